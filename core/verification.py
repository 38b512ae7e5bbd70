"""Access levels and the visibility gate applied to registered handlers."""
import enum


class Verify(enum.IntFlag):
    """Access level bitmask.

    UNCHECKED means "no restriction" on a handler. Bots are free to use
    their own int bits instead of these.
    """
    UNCHECKED = 0
    USER = 1
    MODERATOR = 2
    ADMIN = 4
    OWNER = 8


def is_visible(required: int, actual: int) -> bool:
    """Check whether a caller with ``actual`` may see a handler requiring ``required``.

    Args:
        required: Access level the handler was registered with
        actual: Access level computed for the caller

    Returns:
        True if ``required`` is UNCHECKED or every bit of it is set in ``actual``
    """
    required = int(required)
    return required == Verify.UNCHECKED or (int(actual) & required) == required
