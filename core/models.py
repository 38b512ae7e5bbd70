"""Data models for inbound chat platform updates.

Defines dataclasses for the update kinds the dispatcher routes and parsing
utilities that turn Bot API update dictionaries into them.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


class UpdateKind(str, enum.Enum):
    """Kinds of updates; values are the Bot API update field names."""
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    CALLBACK_QUERY = "callback_query"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    SHIPPING_QUERY = "shipping_query"


TEXT_BEARING_KINDS = frozenset(
    {
        UpdateKind.MESSAGE,
        UpdateKind.EDITED_MESSAGE,
        UpdateKind.CHANNEL_POST,
        UpdateKind.EDITED_CHANNEL_POST,
    }
)


class ChatType(str, enum.Enum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"


# checked in order; animations also carry a "document" field
CONTENT_TYPES = (
    "text",
    "photo",
    "video",
    "audio",
    "animation",
    "document",
    "voice",
    "sticker",
    "location",
    "contact",
)


@dataclass
class User:
    """A platform user.

    Attributes:
        id: Unique user identifier
        is_bot: Whether the user is a bot
        first_name: First name
        last_name: Last name, if set
        username: Username, if set
        language_code: IETF language tag reported by the client
    """
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None


@dataclass
class Chat:
    """A chat a message was sent in.

    Attributes:
        id: Unique chat identifier
        type: "private", "group", "supergroup" or "channel"
        title: Title of groups and channels
        username: Public username, if set
    """
    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None


@dataclass
class Message:  # pylint: disable=too-many-instance-attributes
    """A message, edited message, channel post or edited channel post.

    Attributes:
        message_id: Message identifier inside the chat
        chat: Chat the message belongs to
        from_user: Sender, None for anonymous channel posts
        date: Unix timestamp
        text: Text for plain-text messages
        caption: Caption for media messages
        content_type: One of CONTENT_TYPES or "other"
        reply_to_message: Message this one replies to
        raw: Original message dictionary
    """
    message_id: int
    chat: Chat
    from_user: Optional[User] = None
    date: int = 0
    text: Optional[str] = None
    caption: Optional[str] = None
    content_type: str = "text"
    reply_to_message: Optional["Message"] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_text(self) -> bool:
        return self.content_type == "text" and self.text is not None


@dataclass
class CallbackQuery:
    """A press on an inline keyboard button.

    Attributes:
        id: Query identifier
        from_user: User who pressed the button
        data: Callback data attached to the button
        message: Message carrying the keyboard, if the bot sent it
        inline_message_id: Set for keyboards on inline-mode messages
        raw: Original callback query dictionary
    """
    id: str
    from_user: Optional[User]
    data: Optional[str] = None
    message: Optional[Message] = None
    inline_message_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class InlineQuery:
    """An inline-mode query typed after the bot's username.

    Attributes:
        id: Query identifier
        from_user: Querying user
        query: Query text
        offset: Pagination offset requested by the client
        raw: Original inline query dictionary
    """
    id: str
    from_user: Optional[User]
    query: str = ""
    offset: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ChosenInlineResult:
    """An inline result the user picked and sent."""
    result_id: str
    from_user: Optional[User]
    query: str = ""
    inline_message_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class PreCheckoutQuery:
    """Final confirmation request before a payment is charged.

    Attributes:
        id: Query identifier
        from_user: Paying user
        currency: Three-letter ISO 4217 currency code
        total_amount: Price in the smallest currency unit
        invoice_payload: Payload the bot attached to the invoice
        raw: Original query dictionary
    """
    id: str
    from_user: Optional[User]
    currency: str = ""
    total_amount: int = 0
    invoice_payload: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ShippingQuery:
    """Shipping address request for an invoice with flexible pricing."""
    id: str
    from_user: Optional[User]
    invoice_payload: str = ""
    shipping_address: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


Payload = Union[
    Message,
    CallbackQuery,
    InlineQuery,
    ChosenInlineResult,
    PreCheckoutQuery,
    ShippingQuery,
]


@dataclass
class Update:
    """One inbound update of a single kind.

    Attributes:
        update_id: Update identifier assigned by the platform
        kind: Which kind of payload this update carries
        payload: The parsed payload
        raw: Original update dictionary
    """
    update_id: int
    kind: UpdateKind
    payload: Payload
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def user(self) -> Optional[User]:
        """Originating user, None if the update has none."""
        return self.payload.from_user

    @property
    def message(self) -> Optional[Message]:
        if self.kind in TEXT_BEARING_KINDS:
            return self.payload  # type: ignore[return-value]
        return None


def parse_user(data: Optional[Dict[str, Any]]) -> Optional[User]:
    if not data or data.get("id") is None:
        return None
    return User(
        id=data["id"],
        is_bot=data.get("is_bot", False),
        first_name=data.get("first_name") or "",
        last_name=data.get("last_name"),
        username=data.get("username"),
        language_code=data.get("language_code"),
    )


def parse_chat(data: Optional[Dict[str, Any]]) -> Chat:
    data = data or {}
    return Chat(
        id=data.get("id", 0),
        type=data.get("type", ChatType.PRIVATE.value),
        title=data.get("title"),
        username=data.get("username"),
    )


def detect_content_type(msg: Dict[str, Any]) -> str:
    for content_type in CONTENT_TYPES:
        if msg.get(content_type) is not None:
            if content_type == "document" and msg.get("animation") is not None:
                continue
            return content_type
    return "other"


def parse_message(msg: Optional[Dict[str, Any]]) -> Optional[Message]:
    """Parse a Bot API message dictionary.

    Args:
        msg: Raw message dictionary

    Returns:
        Message, or None if the dictionary is empty
    """
    if not msg:
        return None
    reply = msg.get("reply_to_message")
    return Message(
        message_id=msg.get("message_id", 0),
        chat=parse_chat(msg.get("chat")),
        from_user=parse_user(msg.get("from")),
        date=msg.get("date", 0),
        text=msg.get("text"),
        caption=msg.get("caption"),
        content_type=detect_content_type(msg),
        reply_to_message=parse_message(reply) if reply else None,
        raw=msg,
    )


def _parse_payload(kind: UpdateKind, data: Dict[str, Any]) -> Optional[Payload]:
    from_user = parse_user(data.get("from"))

    if kind in TEXT_BEARING_KINDS:
        return parse_message(data)
    if kind is UpdateKind.CALLBACK_QUERY:
        return CallbackQuery(
            id=str(data.get("id", "")),
            from_user=from_user,
            data=data.get("data"),
            message=parse_message(data.get("message")),
            inline_message_id=data.get("inline_message_id"),
            raw=data,
        )
    if kind is UpdateKind.INLINE_QUERY:
        return InlineQuery(
            id=str(data.get("id", "")),
            from_user=from_user,
            query=data.get("query") or "",
            offset=data.get("offset") or "",
            raw=data,
        )
    if kind is UpdateKind.CHOSEN_INLINE_RESULT:
        return ChosenInlineResult(
            result_id=str(data.get("result_id", "")),
            from_user=from_user,
            query=data.get("query") or "",
            inline_message_id=data.get("inline_message_id"),
            raw=data,
        )
    if kind is UpdateKind.PRE_CHECKOUT_QUERY:
        return PreCheckoutQuery(
            id=str(data.get("id", "")),
            from_user=from_user,
            currency=data.get("currency") or "",
            total_amount=data.get("total_amount", 0),
            invoice_payload=data.get("invoice_payload") or "",
            raw=data,
        )
    if kind is UpdateKind.SHIPPING_QUERY:
        return ShippingQuery(
            id=str(data.get("id", "")),
            from_user=from_user,
            invoice_payload=data.get("invoice_payload") or "",
            shipping_address=data.get("shipping_address") or {},
            raw=data,
        )
    return None


def parse_update(event: Optional[Dict[str, Any]]) -> Optional[Update]:
    """Parse a Bot API update dictionary into an Update.

    The first recognised update field wins; updates of other kinds
    (polls, chat member changes, ...) yield None.

    Args:
        event: Raw update dictionary

    Returns:
        Update if this is a routable update, None otherwise
    """
    if not event:
        return None
    for kind in UpdateKind:
        data = event.get(kind.value)
        if not data:
            continue
        payload = _parse_payload(kind, data)
        if payload is None:
            return None
        return Update(
            update_id=event.get("update_id", 0),
            kind=kind,
            payload=payload,
            raw=event,
        )
    return None
