"""Update dispatching system for routing chat updates to registered handlers.

The dispatcher resolves the acting user's localization model and access
level, lets queued sniffers claim the update, and otherwise routes it to
text, predicate or command handlers depending on the update kind.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.errors import ConfigurationError, HandlerExecutionError
from core.localization import DEFAULT_LOCALIZATION_KEY, LanguageSelector, LocalizationRegistry
from core.models import Message, Update, UpdateKind, User, parse_update
from core.registry import Callback, HandlerRegistry, MessageRule
from core.sniffer import Sniffer, SnifferQueue
from core.verification import Verify, is_visible
from utils.matching import DEFAULT_SEPARATOR, Command, command_matches, split_command

logger = logging.getLogger(__name__)

AccessHook = Callable[[User], Awaitable[int]]
GlobalHook = Callable[[Any, "DispatchContext"], Awaitable[None]]


@dataclass
class DispatcherSettings:
    """Routing settings.

    Attributes:
        separator: Character separating callback data segments
        ignore_messages: Drop new messages
        ignore_edited_messages: Drop edited messages
        ignore_channel_posts: Drop channel posts
        ignore_edited_channel_posts: Drop edited channel posts
        default_localization_key: Language code used when a user's code is unknown
    """
    separator: str = DEFAULT_SEPARATOR
    ignore_messages: bool = False
    ignore_edited_messages: bool = False
    ignore_channel_posts: bool = False
    ignore_edited_channel_posts: bool = False
    default_localization_key: str = DEFAULT_LOCALIZATION_KEY

    def __post_init__(self) -> None:
        if not isinstance(self.separator, str) or len(self.separator) != 1:
            raise ConfigurationError(f"Separator must be a single character, got {self.separator!r}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DispatcherSettings":
        """Build settings from the "dispatcher" and "localization" config sections."""
        dispatcher_cfg = config.get("dispatcher", {}) or {}
        localization_cfg = config.get("localization", {}) or {}
        return cls(
            separator=dispatcher_cfg.get("separator", DEFAULT_SEPARATOR),
            ignore_messages=bool(dispatcher_cfg.get("ignore_messages", False)),
            ignore_edited_messages=bool(dispatcher_cfg.get("ignore_edited_messages", False)),
            ignore_channel_posts=bool(dispatcher_cfg.get("ignore_channel_posts", False)),
            ignore_edited_channel_posts=bool(dispatcher_cfg.get("ignore_edited_channel_posts", False)),
            default_localization_key=localization_cfg.get("default_key", DEFAULT_LOCALIZATION_KEY),
        )

    def ignores(self, kind: UpdateKind) -> bool:
        return {
            UpdateKind.MESSAGE: self.ignore_messages,
            UpdateKind.EDITED_MESSAGE: self.ignore_edited_messages,
            UpdateKind.CHANNEL_POST: self.ignore_channel_posts,
            UpdateKind.EDITED_CHANNEL_POST: self.ignore_edited_channel_posts,
        }.get(kind, False)


@dataclass
class DispatchContext:
    """Everything a handler gets besides the payload.

    Attributes:
        update: The update being dispatched
        user: Originating user
        access: Access level computed for the user
        localization: Localization model resolved for the user
        command: Callback data segments, for callback queries only
    """
    update: Update
    user: User
    access: int
    localization: Any
    command: Optional[Command] = None


class Dispatcher:  # pylint: disable=too-many-instance-attributes
    """Routes chat updates to registered handlers.

    Handlers are registered during setup; start() checks the configuration and
    freezes the registry. Updates are submitted through dispatch(), which can
    be called concurrently for different users.

    Every handler matching an update is awaited in registration order. If any
    of them raise, the others still run and the collected errors are raised
    together as HandlerExecutionError once all of them finished.

    Explicit localization or registry instances must agree with the settings:
    their default key and separator are checked against settings in the
    constructor.
    """

    def __init__(
        self,
        settings: Optional[DispatcherSettings] = None,
        localization: Optional[LocalizationRegistry] = None,
        registry: Optional[HandlerRegistry] = None,
        sniffers: Optional[SnifferQueue] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            settings: Routing settings, defaults when omitted
            localization: Shared localization registry
            registry: Shared handler registry
            sniffers: Shared sniffer queue

        Raises:
            ConfigurationError: if localization or registry disagree with settings
        """
        self.settings = settings or DispatcherSettings()
        if localization is None:
            localization = LocalizationRegistry(self.settings.default_localization_key)
        elif localization.default_key != self.settings.default_localization_key:
            raise ConfigurationError(
                f"Localization default key '{localization.default_key}' does not match "
                f"settings default key '{self.settings.default_localization_key}'"
            )
        if registry is None:
            registry = HandlerRegistry(self.settings.separator)
        elif registry.separator != self.settings.separator:
            raise ConfigurationError(
                f"Registry separator {registry.separator!r} does not match "
                f"settings separator {self.settings.separator!r}"
            )
        self.localization = localization
        self.registry = registry
        self.sniffers = sniffers if sniffers is not None else SnifferQueue()
        self._started = False

        # Optional hooks, all coroutine functions
        self.select_language: Optional[LanguageSelector] = None
        self.verify: Optional[AccessHook] = None
        self.on_inline_query: Optional[GlobalHook] = None
        self.on_chosen_inline_result: Optional[GlobalHook] = None
        self.on_pre_checkout_query: Optional[GlobalHook] = None
        self.on_shipping_query: Optional[GlobalHook] = None

    @property
    def separator(self) -> str:
        return self.registry.separator

    # Registration

    def add_text_handler(self, text, callback: Callback, access: int = Verify.UNCHECKED) -> None:
        """Register a handler for messages equal to a localized string.

        Args:
            text: Literal string, selector over the localization model, or a list of either
            callback: Coroutine function called with (message, context)
            access: Verification flags the user must hold
        """
        self.registry.add_text_handler(text, callback, access)

    def add_predicate_handler(self, predicate, callback: Callback, access: int = Verify.UNCHECKED) -> None:
        """Register a handler for messages accepted by a predicate.

        Args:
            predicate: Function taking a Message and returning a bool
            callback: Coroutine function called with (message, context)
            access: Verification flags the user must hold
        """
        self.registry.add_predicate_handler(predicate, callback, access)

    def add_command_handler(self, pattern, callback: Callback, access: int = Verify.UNCHECKED) -> None:
        """Register a handler for callback queries matching a command pattern.

        Args:
            pattern: Separator-joined pattern, or a list of them
            callback: Coroutine function called with (query, context)
            access: Verification flags the user must hold
        """
        self.registry.add_command_handler(pattern, callback, access)

    def rule(self, chat_types=None) -> MessageRule:
        """Start a declarative message rule, optionally limited to chat types."""
        return self.registry.rule(chat_types)

    def add_localization(self, code: str, model: Any) -> None:
        """Register a localization model under a language code.

        Args:
            code: Language code, e.g. "en"
            model: Localization model handed to handlers

        Raises:
            ConfigurationError: if the code is already registered
        """
        self.localization.add(code, model)

    def load_localizations(self, provider) -> None:
        """Register every (code, model) pair a provider yields."""
        self.localization.load(provider)

    def add_sniffer(self, user_id: int, sniffer: Sniffer) -> None:
        """Queue a sniffer that sees the user's next matching update first.

        Args:
            user_id: User whose updates the sniffer intercepts
            sniffer: Sniffer instance
        """
        self.sniffers.add(user_id, sniffer)

    def start(self) -> None:
        """Check the configuration and freeze the handler registry.

        Raises:
            ConfigurationError: if the default localization key has no model
        """
        if self._started:
            return
        self.localization.check_default()
        self.registry.seal()
        self._started = True
        logger.info(
            "Dispatcher started (separator=%r, default_localization_key=%s, languages=%s)",
            self.separator,
            self.localization.default_key,
            ",".join(self.localization.codes),
        )

    # Dispatching

    async def dispatch(self, update: Union[Update, Dict[str, Any], None]) -> None:
        """Route one update.

        Args:
            update: Parsed Update or raw Bot API update dictionary

        Raises:
            ConfigurationError: if the dispatcher can't start
            LocalizationNotFoundError: if no localization model can be resolved
            HandlerExecutionError: if matched handlers raised
        """
        self.start()

        if isinstance(update, dict):
            update = parse_update(update)
        if update is None:
            return

        user = update.user
        if user is None:
            logger.debug("Ignoring %s update_id=%s without a user", update.kind.value, update.update_id)
            return

        if await self.sniffers.intercept(user.id, update):
            return

        localization = await self.localization.resolve(user, self.select_language)
        access = await self.verify(user) if self.verify is not None else Verify.UNCHECKED
        context = DispatchContext(update=update, user=user, access=access, localization=localization)

        if update.message is not None:
            if self.settings.ignores(update.kind):
                logger.debug("Ignoring %s update_id=%s by settings", update.kind.value, update.update_id)
                return
            await self._dispatch_message(update.message, context)
        elif update.kind is UpdateKind.CALLBACK_QUERY:
            await self._dispatch_callback_query(update.payload, context)
        else:
            await self._dispatch_global(update, context)

    async def _dispatch_message(self, message: Message, context: DispatchContext) -> None:
        text_handlers = self.registry.text_handlers
        if message.is_text and text_handlers:
            for handler in text_handlers:
                if handler.selector(context.localization) != message.text:
                    continue
                if not is_visible(handler.access, context.access):
                    # hidden text match falls through to predicates
                    break
                logger.debug("Text handler matched message_id=%s", message.message_id)
                await self._run_all([handler], message, context)
                return

        await self._run_matching(
            self.registry.predicate_handlers,
            lambda handler: handler.predicate(message),
            message,
            context,
        )

    async def _dispatch_callback_query(self, query, context: DispatchContext) -> None:
        context.command = split_command(query.data or "", self.separator)
        ran = await self._run_matching(
            self.registry.command_handlers,
            lambda handler: command_matches(context.command, handler.pattern),
            query,
            context,
        )
        if not ran:
            logger.debug("No command handler for callback data=%r", query.data)

    async def _dispatch_global(self, update: Update, context: DispatchContext) -> None:
        hook = {
            UpdateKind.INLINE_QUERY: self.on_inline_query,
            UpdateKind.CHOSEN_INLINE_RESULT: self.on_chosen_inline_result,
            UpdateKind.PRE_CHECKOUT_QUERY: self.on_pre_checkout_query,
            UpdateKind.SHIPPING_QUERY: self.on_shipping_query,
        }.get(update.kind)
        if hook is not None:
            await hook(update.payload, context)

    async def _run_matching(self, handlers, matches, payload: Any, context: DispatchContext) -> int:
        """Run every visible handler accepted by matches(handler), in order.

        A raising matcher counts as a failed handler: it is logged, collected
        and the remaining handlers are still tried.

        Returns:
            Number of handlers that were run
        """
        errors: List[Exception] = []
        ran = 0
        for handler in handlers:
            try:
                if not matches(handler) or not is_visible(handler.access, context.access):
                    continue
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.exception(
                    "Error matching handler %s for update_id=%s",
                    _callback_name(handler),
                    context.update.update_id,
                )
                errors.append(exc)
                continue
            ran += 1
            error = await self._run_one(handler, payload, context)
            if error is not None:
                errors.append(error)
        _raise_collected(errors, context)
        return ran

    async def _run_all(self, handlers, payload: Any, context: DispatchContext) -> None:
        errors: List[Exception] = []
        for handler in handlers:
            error = await self._run_one(handler, payload, context)
            if error is not None:
                errors.append(error)
        _raise_collected(errors, context)

    @staticmethod
    async def _run_one(handler, payload: Any, context: DispatchContext) -> Optional[Exception]:
        try:
            await handler.callback(payload, context)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # Collected and re-raised once every matched handler ran
            logger.exception(
                "Error in handler %s for update_id=%s",
                _callback_name(handler),
                context.update.update_id,
            )
            return exc
        return None


def _callback_name(handler) -> str:
    return getattr(handler.callback, "__qualname__", repr(handler.callback))


def _raise_collected(errors: List[Exception], context: DispatchContext) -> None:
    if errors:
        raise HandlerExecutionError(
            f"{len(errors)} handler(s) failed for update_id={context.update.update_id}",
            errors,
        )
