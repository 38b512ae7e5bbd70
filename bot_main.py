"""Main entry point for the update dispatch bot.

This module wires the dispatcher with:
- Configuration and localization files
- A small set of demo handlers
- Sniffer expiry

Bot API updates are read as JSON lines from BOT_DISPATCH_UPDATES (a file
path, stdin when unset) and replies are logged instead of being sent.
"""
import json
import logging
import os
import sys

import trio

from config import ConfigManager
from core.dispatcher import DispatchContext, Dispatcher, DispatcherSettings
from core.errors import HandlerExecutionError
from core.models import Message, Update, UpdateKind, parse_update
from core.sniffer import Sniffer
from core.verification import Verify
from storage.file_store import LocalizationDirectory
from utils.matching import join_command
from utils.scheduling import SnifferExpiryScheduler

logger = logging.getLogger(__name__)


async def reply(context: DispatchContext, text: str) -> None:
    logger.info("-> user_id=%s: %s", context.user.id, text)


class NameSniffer(Sniffer):
    """Waits for the user's next text message and treats it as their name."""

    def __init__(self, localization) -> None:
        self.localization = localization

    def filter_kinds(self):
        return [UpdateKind.MESSAGE]

    async def validate(self, update: Update) -> bool:
        message = update.message
        return message is not None and message.is_text and bool(message.text.strip())

    async def on_success(self, update: Update) -> None:
        logger.info(
            "-> user_id=%s: %s",
            update.user.id,
            self.localization["name_saved"].format(name=update.message.text.strip()),
        )

    async def on_failure(self, update: Update) -> None:
        logger.info("-> user_id=%s: %s", update.user.id, self.localization["name_invalid"])


def register_handlers(dispatcher: Dispatcher, scheduler: SnifferExpiryScheduler, expire_after: float) -> None:
    """Register the demo handlers."""

    async def greet(message: Message, context: DispatchContext) -> None:
        await reply(context, context.localization["greeting"])

    async def ask_name(message: Message, context: DispatchContext) -> None:
        sniffer = NameSniffer(context.localization)
        dispatcher.add_sniffer(context.user.id, sniffer)
        if expire_after:
            scheduler.schedule_expiry(context.user.id, sniffer, expire_after)
        await reply(context, context.localization["ask_name"])

    async def show_menu(message: Message, context: DispatchContext) -> None:
        sep = dispatcher.separator
        buttons = [join_command(["menu", "open", item], sep) for item in ("news", "help")]
        await reply(context, f"{context.localization['menu']} {buttons}")

    async def open_menu_item(query, context: DispatchContext) -> None:
        await reply(context, f"{context.localization['opened']} {context.command[2]}")

    async def admin_stats(message: Message, context: DispatchContext) -> None:
        await reply(context, f"users with sniffers: {len(dispatcher.sniffers)}")

    async def fallback(message: Message, context: DispatchContext) -> None:
        await reply(context, context.localization["unknown"])

    async def inline_query(query, context: DispatchContext) -> None:
        await reply(context, f"inline query {query.query!r}")

    dispatcher.add_text_handler(lambda loc: loc["greeting_trigger"], greet)
    dispatcher.add_text_handler(lambda loc: loc["menu_trigger"], show_menu)
    dispatcher.rule(chat_types=["private"]).starts_with("/name", ask_name)
    dispatcher.rule().equals("/stats", admin_stats, access=Verify.ADMIN)
    dispatcher.add_predicate_handler(
        lambda m: m.is_text and not m.text.startswith("/"), fallback
    )
    dispatcher.add_command_handler("menu~open~ ", open_menu_item)
    dispatcher.on_inline_query = inline_query


async def dispatch_one(dispatcher: Dispatcher, update: Update) -> None:
    try:
        await dispatcher.dispatch(update)
    except HandlerExecutionError:
        # Already logged per handler; keep serving other updates
        logger.warning("Update %s finished with handler errors", update.update_id)
    except Exception:  # pylint: disable=broad-exception-caught
        # Hooks and sniffer continuations raise unwrapped; one update must not
        # take down the update loop
        logger.exception("Error dispatching update %s", update.update_id)


async def main() -> None:
    """Initialize the dispatcher and replay updates through it."""
    config_path = os.environ.get("BOT_DISPATCH_CONFIG", "config.yaml")
    config_mgr = ConfigManager(config_path)
    config = config_mgr.load()

    logging.basicConfig(
        level=config_mgr.section("logging").get("level", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting bot-dispatch")

    dispatcher = Dispatcher(DispatcherSettings.from_config(config))
    dispatcher.load_localizations(
        LocalizationDirectory(config_mgr.section("localization").get("directory", "locales"))
    )

    admin_ids = set(config.get("admins", []) or [])

    async def verify(user) -> int:
        return Verify.USER | Verify.ADMIN if user.id in admin_ids else Verify.USER

    dispatcher.verify = verify

    sniffer_cfg = config_mgr.section("sniffers")
    scheduler = SnifferExpiryScheduler(
        dispatcher.sniffers,
        interval=sniffer_cfg.get("sweep_interval_seconds", 30),
    )
    register_handlers(dispatcher, scheduler, sniffer_cfg.get("expire_after_seconds", 0))
    dispatcher.start()

    updates_path = os.environ.get("BOT_DISPATCH_UPDATES")
    source = await trio.open_file(updates_path, "r", encoding="utf-8") if updates_path else trio.wrap_file(sys.stdin)

    async with trio.open_nursery() as nursery:
        # Start scheduler loop
        nursery.start_soon(scheduler.run)

        # Updates of different users are dispatched concurrently
        async with trio.open_nursery() as updates_nursery:
            async with source:
                async for line in source:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        raw = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Skipping malformed update line: %.80s", line)
                        continue
                    update = parse_update(raw) if isinstance(raw, dict) else None
                    if update is None:
                        logger.debug("Skipping unsupported update: %.80s", line)
                        continue
                    updates_nursery.start_soon(dispatch_one, dispatcher, update)

        logger.info("Update source exhausted, stopping")
        nursery.cancel_scope.cancel()


def run() -> None:
    trio.run(main)


if __name__ == "__main__":
    run()
