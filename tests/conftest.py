from typing import Any, Dict, Optional

import pytest

from core.dispatcher import Dispatcher, DispatcherSettings


def _user(user_id: int, language_code: Optional[str]) -> Dict[str, Any]:
    user = {"id": user_id, "is_bot": False, "first_name": f"user{user_id}"}
    if language_code is not None:
        user["language_code"] = language_code
    return user


@pytest.fixture
def message_update():
    """Factory for raw message-like updates."""

    def make(
        text: Optional[str] = "Hi",
        user_id: Optional[int] = 1,
        language_code: Optional[str] = "en",
        kind: str = "message",
        chat_type: str = "private",
        update_id: int = 1,
        **extra: Any,
    ) -> Dict[str, Any]:
        msg: Dict[str, Any] = {
            "message_id": update_id * 10,
            "date": 1700000000,
            "chat": {"id": user_id or -100, "type": chat_type},
        }
        if user_id is not None:
            msg["from"] = _user(user_id, language_code)
        if text is not None:
            msg["text"] = text
        msg.update(extra)
        return {"update_id": update_id, kind: msg}

    return make


@pytest.fixture
def callback_update():
    """Factory for raw callback query updates."""

    def make(data: str, user_id: int = 1, language_code: Optional[str] = "en", update_id: int = 1) -> Dict[str, Any]:
        return {
            "update_id": update_id,
            "callback_query": {
                "id": f"cb{update_id}",
                "from": _user(user_id, language_code),
                "data": data,
            },
        }

    return make


@pytest.fixture
def query_update():
    """Factory for inline/payment updates keyed by kind."""

    def make(kind: str, user_id: int = 1, update_id: int = 1, **fields: Any) -> Dict[str, Any]:
        body: Dict[str, Any] = {"id": f"q{update_id}", "from": _user(user_id, "en")}
        body.update(fields)
        return {"update_id": update_id, kind: body}

    return make


@pytest.fixture
def dispatcher() -> Dispatcher:
    d = Dispatcher(DispatcherSettings())
    d.add_localization("en", {"hello": "Hi", "lang": "en"})
    d.add_localization("ru", {"hello": "Привет", "lang": "ru"})
    return d
