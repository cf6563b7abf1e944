from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, List, Optional, TypeVar

from tgpoll.infra.logging import get_logger
from tgpoll.infra.metrics import Metrics, get_metrics
from tgpoll.infra.settings import (
    DEFAULT_POLL_TIMEOUT,
    TELEGRAM_API_URL,
    HandlerErrorPolicy,
    ParseMode,
    Settings,
)

from .endpoint import base_endpoint, compose
from .envelope import decode_envelope
from .errors import BotError
from .params import Params, build_params
from .transport import HttpTransport
from .types import GET_ME, GET_UPDATES, SEND_MESSAGE, ApiMethod, Message, Update, User

logger = get_logger(__name__)

T = TypeVar("T")

# Seconds the HTTP read timeout outlives the server-side long-poll wait.
POLL_TIMEOUT_SLACK_SEC = 10

UpdateHandler = Callable[["Bot", Update], None]


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"
    TERMINATED = "terminated"


class Bot:
    """Synchronous Bot API client.

    The bot owns the update ``offset``: the smallest update id not yet handed
    to a handler by :meth:`long_poll`. It starts at 0 and only grows. The
    offset lives in memory only, so updates of the last poll before a restart
    may be delivered again.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = TELEGRAM_API_URL,
        transport: HttpTransport | None = None,
        metrics: Metrics | None = None,
    ):
        self._url = base_endpoint(token, api_url)
        self._transport = transport or HttpTransport()
        self._metrics = metrics or Metrics(enabled=False)
        self._offset = 0
        self._state = PollState.IDLE

    @classmethod
    def from_settings(cls, settings: Settings) -> "Bot":
        transport = HttpTransport(
            request_timeout_sec=settings.request_timeout_sec,
            connect_timeout_sec=settings.connect_timeout_sec,
        )
        return cls(
            settings.telegram_bot_token,
            api_url=settings.telegram_api_url,
            transport=transport,
            metrics=get_metrics(settings),
        )

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def poll_state(self) -> PollState:
        return self._state

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "Bot":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _send_request(self, method: ApiMethod[T], params: Params, timeout: Optional[float] = None) -> T:
        url = compose(self._url, method.name, params)
        self._metrics.inc_request(method.name)
        logger.debug("bot_request", extra={"method": method.name, "params": [name for name, _ in params]})
        try:
            with self._metrics.latency_timer():
                body = self._transport.get(url, timeout=timeout)
            return decode_envelope(body, method)
        except BotError as exc:
            logger.error(
                "bot_request_failed",
                extra={"method": method.name, "kind": exc.kind, "error": str(exc)},
            )
            self._metrics.inc_error(exc.kind)
            raise

    def get_me(self) -> User:
        return self._send_request(GET_ME, build_params())

    def get_updates(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        timeout: Optional[int] = None,
    ) -> List[Update]:
        """Call ``getUpdates`` once. The bot's own offset is neither read nor changed."""
        params = build_params(("offset", offset), ("limit", limit), ("timeout", timeout))
        request_timeout = timeout + POLL_TIMEOUT_SLACK_SEC if timeout else None
        return self._send_request(GET_UPDATES, params, timeout=request_timeout)

    def send_message(
        self,
        chat_id: int | str,
        text: str,
        parse_mode: ParseMode | None = None,
        reply_to_message_id: Optional[int] = None,
        disable_web_page_preview: Optional[bool] = None,
    ) -> Message:
        params = build_params(
            ("chat_id", chat_id),
            ("text", text),
            ("parse_mode", parse_mode),
            ("reply_to_message_id", reply_to_message_id),
            ("disable_web_page_preview", disable_web_page_preview),
        )
        return self._send_request(SEND_MESSAGE, params)

    def long_poll(
        self,
        handler: UpdateHandler,
        timeout: Optional[int] = None,
        limit: Optional[int] = None,
        stop_event: threading.Event | None = None,
        handler_errors: HandlerErrorPolicy = HandlerErrorPolicy.PROPAGATE,
    ) -> None:
        """Poll ``getUpdates`` and hand every new update to ``handler(bot, update)``.

        The offset is moved past an update before its handler runs, so a failing
        handler never sees the same update twice within one call. Updates the
        server redelivers below the current offset are skipped.

        Returns when ``stop_event`` is set; it is checked before each poll and
        before each dispatch. Any :class:`BotError` from the poll request ends
        the loop and is raised to the caller. A handler exception is raised as
        well unless ``handler_errors`` is ``HandlerErrorPolicy.SKIP``, in which
        case it is logged and the next update is dispatched.
        """
        timeout = DEFAULT_POLL_TIMEOUT if timeout is None else timeout
        logger.info("polling_started", extra={"offset": self._offset, "timeout": timeout})
        try:
            while not _is_set(stop_event):
                self._state = PollState.POLLING
                updates = self.get_updates(offset=self._offset, limit=limit, timeout=timeout)
                self._state = PollState.DISPATCHING
                for update in updates:
                    if _is_set(stop_event):
                        break
                    self._dispatch(handler, update, handler_errors)
        except BaseException as exc:
            self._state = PollState.TERMINATED
            logger.error(
                "polling_terminated",
                extra={"offset": self._offset, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise
        self._state = PollState.IDLE
        logger.info("polling_stopped", extra={"offset": self._offset})

    def _dispatch(self, handler: UpdateHandler, update: Update, handler_errors: HandlerErrorPolicy) -> None:
        if update.update_id < self._offset:
            logger.info("update_skipped", extra={"update_id": update.update_id, "offset": self._offset})
            self._metrics.inc_update("skipped")
            return

        self._offset = update.update_id + 1
        try:
            handler(self, update)
        except Exception:
            self._metrics.inc_update("failed")
            if handler_errors is HandlerErrorPolicy.PROPAGATE:
                raise
            logger.exception("handler_failed", extra={"update_id": update.update_id})
            return
        self._metrics.inc_update("dispatched")
        logger.debug("update_dispatched", extra={"update_id": update.update_id, "offset": self._offset})


def _is_set(stop_event: threading.Event | None) -> bool:
    return stop_event is not None and stop_event.is_set()
