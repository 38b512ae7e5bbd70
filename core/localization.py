"""Localization models keyed by language code and per-user resolution."""
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from core.errors import ConfigurationError, LocalizationNotFoundError
from core.models import User

logger = logging.getLogger(__name__)

DEFAULT_LOCALIZATION_KEY = "en"

LanguageSelector = Callable[[User], Awaitable[Optional[str]]]


class LocalizationRegistry:
    """
    Holds one localization model per IETF language code.
    Models are opaque to the registry; bots decide what they look like.
    """

    def __init__(self, default_key: str = DEFAULT_LOCALIZATION_KEY) -> None:
        self.default_key = default_key
        self._models: Dict[str, Any] = {}

    def add(self, code: str, model: Any) -> None:
        """Register the model for a language code.

        Args:
            code: IETF language code (en, ru, de, ...)
            model: Localization model for that language

        Raises:
            ValueError: if the code is blank or the model is None
            ConfigurationError: if the code is already registered
        """
        if code is None or not code.strip():
            raise ValueError("Language code can't be None, empty or whitespace")
        if model is None:
            raise ValueError(f"Localization model for '{code}' is None")
        if code in self._models:
            raise ConfigurationError(f"Localization for language code '{code}' already exists")
        self._models[code] = model
        logger.info("Registered localization for language code=%s", code)

    def load(self, provider: Iterable[Tuple[str, Any]]) -> None:
        """Register every (code, model) pair yielded by a provider."""
        for code, model in provider:
            self.add(code, model)

    def check_default(self) -> None:
        """Fail unless the default key resolves to a registered model."""
        if self.default_key is None or not self.default_key.strip():
            raise ConfigurationError("Default localization key is not configured")
        if self.default_key not in self._models:
            raise ConfigurationError(
                f"Default localization key '{self.default_key}' has no registered model"
            )

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(self._models)

    def __contains__(self, code: object) -> bool:
        return code in self._models

    def get(self, code: str) -> Any:
        return self._models.get(code)

    async def resolve(self, user: User, select_language: Optional[LanguageSelector] = None) -> Any:
        """Find the localization model for a user.

        The language code comes from ``select_language`` when given, otherwise
        from the code the client reported. Blank or unknown codes fall back to
        the default key.

        Raises:
            LocalizationNotFoundError: if even the fallback code is unregistered
        """
        if select_language is not None:
            code = await select_language(user)
        else:
            code = user.language_code

        if code is None or not code.strip() or code not in self._models:
            logger.debug(
                "No localization for code=%r (user_id=%s), using default=%s",
                code,
                user.id,
                self.default_key,
            )
            code = self.default_key

        model = self._models.get(code)
        if model is None:
            raise LocalizationNotFoundError(code)
        return model
