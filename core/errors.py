"""Exceptions raised by the dispatch engine."""


class ConfigurationError(Exception):
    """Setup problem that must stop the bot from accepting updates."""


class LocalizationNotFoundError(ConfigurationError, KeyError):
    """No localization model is registered for a language code."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Language code '{code}' was not found")
        self.code = code

    def __str__(self) -> str:
        return self.args[0]


class RegistrationClosedError(RuntimeError):
    """A handler was registered after the dispatcher started."""


class HandlerExecutionError(ExceptionGroup):
    """One or more matched handlers raised while processing an update.

    Raised after every matched handler for the update has been awaited.
    """

    def derive(self, excs):  # type: ignore[override]
        return HandlerExecutionError(self.message, excs)
