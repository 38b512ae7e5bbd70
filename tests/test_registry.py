import pytest

from core.errors import RegistrationClosedError
from core.models import parse_update
from core.registry import HandlerRegistry
from core.verification import Verify


async def noop(payload, context):
    return None


def test_registration_preserves_order():
    reg = HandlerRegistry()
    reg.add_command_handler("a~ ", noop)
    reg.add_command_handler(["b", "c~d"], noop, access=Verify.ADMIN)
    assert [h.pattern for h in reg.command_handlers] == [("a", " "), ("b",), ("c", "d")]
    assert reg.command_handlers[2].access == Verify.ADMIN


def test_command_patterns_use_registry_separator():
    reg = HandlerRegistry(separator="|")
    reg.add_command_handler("a|b~c", noop)
    assert reg.command_handlers[0].pattern == ("a", "b~c")


def test_text_handlers_accept_literals_selectors_and_lists():
    reg = HandlerRegistry()
    reg.add_text_handler("Hi", noop)
    reg.add_text_handler(lambda loc: loc["bye"], noop)
    reg.add_text_handler(["One", lambda loc: loc["two"]], noop)

    loc = {"bye": "Bye", "two": "Two"}
    assert [h.selector(loc) for h in reg.text_handlers] == ["Hi", "Bye", "One", "Two"]


def test_none_arguments_are_rejected():
    reg = HandlerRegistry()
    with pytest.raises(ValueError):
        reg.add_text_handler([None], noop)
    with pytest.raises(ValueError):
        reg.add_predicate_handler(None, noop)
    with pytest.raises(ValueError):
        reg.add_command_handler([None], noop)


def test_sealed_registry_rejects_registration():
    reg = HandlerRegistry()
    reg.add_predicate_handler(lambda m: True, noop)
    reg.seal()
    assert reg.sealed
    with pytest.raises(RegistrationClosedError):
        reg.add_predicate_handler(lambda m: True, noop)
    with pytest.raises(RegistrationClosedError):
        reg.rule().equals("x", noop)
    assert len(reg.predicate_handlers) == 1


def test_exposed_collections_are_read_only():
    reg = HandlerRegistry()
    reg.add_text_handler("Hi", noop)
    assert isinstance(reg.text_handlers, tuple)


def test_rule_text_predicates(message_update):
    reg = HandlerRegistry()
    rule = reg.rule(chat_types=["private"])
    rule.equals("hello", noop, ignore_case=True)
    rule.contains("bar", noop)
    rule.starts_with(["/start", "/go"], noop)
    rule.ends_with("!", noop)

    def matches(text, chat_type="private"):
        message = parse_update(message_update(text, chat_type=chat_type)).message
        return [h.predicate(message) for h in reg.predicate_handlers]

    assert matches("HELLO") == [True, False, False, False, False]
    assert matches("foobarbaz") == [False, True, False, False, False]
    assert matches("/go now!") == [False, False, False, True, True]
    assert matches("hello", chat_type="group") == [False] * 5


def test_rule_content_type(message_update):
    reg = HandlerRegistry()
    reg.rule().content("photo", noop)
    photo = parse_update(message_update(None, photo=[{"file_id": "p"}])).message
    text = parse_update(message_update("photo")).message
    handler = reg.predicate_handlers[0]
    assert handler.predicate(photo)
    assert not handler.predicate(text)


def test_rule_unknown_mode():
    reg = HandlerRegistry()
    with pytest.raises(ValueError):
        reg.rule()._add_text_rule("regex", "x", noop, Verify.UNCHECKED, False)
