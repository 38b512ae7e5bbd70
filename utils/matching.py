"""Text and command matching utilities.

Structured commands are callback payloads split on a single separator
character. Patterns registered by handlers use blank segments as wildcards.
"""
from typing import Iterable, Sequence, Tuple

DEFAULT_SEPARATOR = "~"

Command = Tuple[str, ...]

TEXT_MODES = ("equals", "contains", "starts_with", "ends_with")


def split_command(data: str, separator: str = DEFAULT_SEPARATOR) -> Command:
    """Split raw callback data into segments, keeping empty ones."""
    return tuple(data.split(separator))


def join_command(segments: Iterable[str], separator: str = DEFAULT_SEPARATOR) -> str:
    """Encode segments into callback data.

    Raises:
        ValueError: if a segment contains the separator
    """
    parts = [str(s) for s in segments]
    for part in parts:
        if separator in part:
            raise ValueError(f"Segment {part!r} contains separator {separator!r}")
    return separator.join(parts)


def is_wildcard(segment: str) -> bool:
    return not segment.strip()


def command_matches(payload: Sequence[str], pattern: Sequence[str]) -> bool:
    """
    Compare a payload against a pattern position by position.
    - arity must be identical
    - a blank pattern segment accepts any payload segment
    - anything else is an exact comparison
    """
    if len(payload) != len(pattern):
        return False
    for actual, expected in zip(payload, pattern):
        if is_wildcard(expected):
            continue
        if actual != expected:
            return False
    return True


def text_matches(text: str, expected: str, mode: str = "equals", ignore_case: bool = False) -> bool:
    """Compare message text against an expected string.

    Args:
        text: Message text
        expected: String registered by the handler
        mode: One of "equals", "contains", "starts_with", "ends_with"
        ignore_case: Compare casefolded strings instead of exact ones

    Returns:
        True if the text satisfies the comparison
    """
    if ignore_case:
        text = text.casefold()
        expected = expected.casefold()

    if mode == "equals":
        return text == expected
    if mode == "contains":
        return expected in text
    if mode == "starts_with":
        return text.startswith(expected)
    if mode == "ends_with":
        return text.endswith(expected)
    raise ValueError(f"Unknown text match mode: {mode}")
