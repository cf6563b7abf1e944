from __future__ import annotations

import threading

from tgpoll.bot.client import Bot, UpdateHandler
from tgpoll.bot.types import Update
from tgpoll.infra.logging import get_logger, setup_logging
from tgpoll.infra.settings import Settings, get_settings

logger = get_logger(__name__)


def make_update_handler(settings: Settings) -> UpdateHandler:
    def handle(bot: Bot, update: Update) -> None:
        message = update.effective_message
        if message is None:
            logger.info("update_received", extra={"update_id": update.update_id, "kind": "other"})
            return
        logger.info(
            "update_received",
            extra={"update_id": update.update_id, "kind": "message", "chat_id": message.chat.id},
        )
        if settings.echo_enabled and message.text:
            bot.send_message(
                message.chat.id,
                message.text,
                parse_mode=settings.reply_parse_mode,
                reply_to_message_id=message.message_id,
            )

    return handle


def run_polling(settings: Settings | None = None, stop_event: threading.Event | None = None) -> None:
    settings = settings or get_settings()
    setup_logging(settings)
    handler = make_update_handler(settings)

    with Bot.from_settings(settings) as bot:
        me = bot.get_me()
        logger.info("bot_authenticated", extra={"bot_id": me.id, "username": me.username})
        bot.long_poll(
            handler,
            timeout=settings.poll_timeout,
            limit=settings.poll_limit,
            stop_event=stop_event,
            handler_errors=settings.handler_error_policy,
        )
