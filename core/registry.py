"""Handler registry for the dispatcher.

Keeps three ordered, append-only collections of handlers: localized text
handlers, message predicate handlers and callback command handlers.
Registration order is the order handlers are tried in.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from core.errors import RegistrationClosedError
from core.models import Message
from core.verification import Verify
from utils.matching import DEFAULT_SEPARATOR, TEXT_MODES, Command, split_command, text_matches

logger = logging.getLogger(__name__)

Callback = Callable[..., Awaitable[None]]
TextSelector = Callable[[Any], str]
MessagePredicate = Callable[[Message], bool]


@dataclass(frozen=True)
class TextHandler:
    """Matches a plain-text message equal to a localized string.

    Attributes:
        selector: Picks the expected text out of the localization model
        callback: Coroutine function called with (message, context)
        access: Required access level
    """
    selector: TextSelector
    callback: Callback
    access: int = Verify.UNCHECKED


@dataclass(frozen=True)
class PredicateHandler:
    """Matches any message a predicate accepts.

    Predicates run inside the dispatcher's collect loop, so one raising
    predicate is reported like a failed handler.

    Attributes:
        predicate: Function taking a Message and returning a bool
        callback: Coroutine function called with (message, context)
        access: Required access level
    """
    predicate: MessagePredicate
    callback: Callback
    access: int = Verify.UNCHECKED


@dataclass(frozen=True)
class CommandHandler:
    """Matches callback data against a wildcard pattern.

    Attributes:
        pattern: Pattern segments; blank segments are wildcards
        callback: Coroutine function called with (callback_query, context)
        access: Required access level
    """
    pattern: Command
    callback: Callback
    access: int = Verify.UNCHECKED


def _constant(text: str) -> TextSelector:
    return lambda _localization: text


class HandlerRegistry:
    """
    Append-only storage for handlers, frozen by seal() before traffic starts.
    """

    def __init__(self, separator: str = DEFAULT_SEPARATOR) -> None:
        self.separator = separator
        self._command_handlers: List[CommandHandler] = []
        self._predicate_handlers: List[PredicateHandler] = []
        self._text_handlers: List[TextHandler] = []
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Freeze the registry; further registration raises."""
        if not self._sealed:
            logger.info(
                "Handler registry sealed: %d text, %d predicate, %d command handlers",
                len(self._text_handlers),
                len(self._predicate_handlers),
                len(self._command_handlers),
            )
        self._sealed = True

    @property
    def command_handlers(self) -> Tuple[CommandHandler, ...]:
        return tuple(self._command_handlers)

    @property
    def predicate_handlers(self) -> Tuple[PredicateHandler, ...]:
        return tuple(self._predicate_handlers)

    @property
    def text_handlers(self) -> Tuple[TextHandler, ...]:
        return tuple(self._text_handlers)

    def _check_open(self) -> None:
        if self._sealed:
            raise RegistrationClosedError("Handlers can't be registered after the dispatcher started")

    def add_text_handler(
        self,
        text: Union[str, TextSelector, Sequence[Union[str, TextSelector]]],
        callback: Callback,
        access: int = Verify.UNCHECKED,
    ) -> None:
        """Register a handler for plain-text messages equal to a localized string.

        Args:
            text: A literal string, a selector over the localization model,
                or a list of either (one handler per element)
            callback: Coroutine function called with (message, context)
            access: Required access level
        """
        self._check_open()
        items = list(text) if isinstance(text, (list, tuple)) else [text]
        for item in items:
            if item is None:
                raise ValueError("Text selector can't be None")
            selector = _constant(item) if isinstance(item, str) else item
            self._text_handlers.append(TextHandler(selector, callback, access))

    def add_predicate_handler(
        self,
        predicate: MessagePredicate,
        callback: Callback,
        access: int = Verify.UNCHECKED,
    ) -> None:
        """Register a handler for every message the predicate accepts."""
        self._check_open()
        if predicate is None:
            raise ValueError("Predicate can't be None")
        self._predicate_handlers.append(PredicateHandler(predicate, callback, access))

    def add_command_handler(
        self,
        pattern: Union[str, Sequence[str]],
        callback: Callback,
        access: int = Verify.UNCHECKED,
    ) -> None:
        """Register a handler for callback data matching a pattern.

        Args:
            pattern: Pattern string split on the separator, e.g. "widget~calendar~ ~ ",
                or a list of such strings (one handler per element)
            callback: Coroutine function called with (callback_query, context)
            access: Required access level
        """
        self._check_open()
        patterns = [pattern] if isinstance(pattern, str) else list(pattern)
        for item in patterns:
            if item is None:
                raise ValueError("Command pattern can't be None")
            self._command_handlers.append(
                CommandHandler(split_command(item, self.separator), callback, access)
            )

    def rule(self, chat_types: Optional[Iterable[str]] = None) -> "MessageRule":
        """Start a message rule, optionally limited to some chat types."""
        return MessageRule(self, chat_types)


class MessageRule:
    """Builds predicate handlers for common message checks.

    Example:
        registry.rule(chat_types=["private"]).starts_with("/start", on_start)
    """

    def __init__(self, registry: HandlerRegistry, chat_types: Optional[Iterable[str]] = None) -> None:
        self._registry = registry
        self._chat_types = frozenset(str(getattr(t, "value", t)) for t in chat_types) if chat_types else None

    def _chat_allowed(self, message: Message) -> bool:
        return self._chat_types is None or message.chat.type in self._chat_types

    def _add_text_rule(
        self,
        mode: str,
        text: Union[str, Sequence[str]],
        callback: Callback,
        access: int,
        ignore_case: bool,
    ) -> None:
        if mode not in TEXT_MODES:
            raise ValueError(f"Unknown text match mode: {mode}")
        texts = [text] if isinstance(text, str) else list(text)
        for expected in texts:
            def predicate(message: Message, expected: str = expected) -> bool:
                return (
                    self._chat_allowed(message)
                    and message.is_text
                    and text_matches(message.text, expected, mode, ignore_case)
                )

            self._registry.add_predicate_handler(predicate, callback, access)

    def equals(self, text, callback: Callback, access: int = Verify.UNCHECKED, ignore_case: bool = False) -> None:
        self._add_text_rule("equals", text, callback, access, ignore_case)

    def contains(self, text, callback: Callback, access: int = Verify.UNCHECKED, ignore_case: bool = False) -> None:
        self._add_text_rule("contains", text, callback, access, ignore_case)

    def starts_with(self, text, callback: Callback, access: int = Verify.UNCHECKED, ignore_case: bool = False) -> None:
        self._add_text_rule("starts_with", text, callback, access, ignore_case)

    def ends_with(self, text, callback: Callback, access: int = Verify.UNCHECKED, ignore_case: bool = False) -> None:
        self._add_text_rule("ends_with", text, callback, access, ignore_case)

    def content(self, content_type: str, callback: Callback, access: int = Verify.UNCHECKED) -> None:
        """Register a handler for messages of one content type (photo, video, ...)."""
        def predicate(message: Message) -> bool:
            return self._chat_allowed(message) and message.content_type == content_type

        self._registry.add_predicate_handler(predicate, callback, access)
