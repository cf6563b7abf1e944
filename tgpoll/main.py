from __future__ import annotations

import signal
import sys
import threading

from pydantic import ValidationError

from tgpoll.bot.errors import BotError, InvalidTokenError
from tgpoll.infra.logging import get_logger, setup_logging
from tgpoll.infra.metrics import get_metrics
from tgpoll.infra.settings import get_settings
from tgpoll.polling import run_polling

logger = get_logger(__name__)


def install_signal_handlers(stop_event: threading.Event) -> None:
    def _stop(signum: int, _frame: object) -> None:
        logger.info("shutdown_requested", extra={"signal": signal.Signals(signum).name})
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main() -> int:
    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    setup_logging(settings)

    if settings.metrics_enabled and settings.metrics_port:
        get_metrics(settings).serve(settings.metrics_port)
        logger.info("metrics_server_started", extra={"port": settings.metrics_port})

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    try:
        run_polling(settings, stop_event=stop_event)
    except InvalidTokenError as exc:
        logger.error("invalid_token", extra={"error": str(exc)})
        return 2
    except BotError as exc:
        logger.error("polling_failed", extra={"kind": exc.kind, "error": str(exc)})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
