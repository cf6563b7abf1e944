import json
import threading

import pytest

from tests.fakes import API_URL, TOKEN, FakeTransport, batch, ok
from tgpoll.bot.client import Bot, PollState
from tgpoll.bot.errors import APIError, DecodeError, InvalidTokenError, TransportError
from tgpoll.infra.metrics import Metrics
from tgpoll.infra.settings import HandlerErrorPolicy, ParseMode, Settings

UNAUTHORIZED = json.dumps({"ok": False, "error_code": 401, "description": "Unauthorized"})


def _bot(*responses, metrics=None):
    transport = FakeTransport(*responses)
    return Bot(TOKEN, api_url=API_URL, transport=transport, metrics=metrics), transport


def _recorder(log):
    def handler(bot, update):
        log.append((update.update_id, bot.offset))

    return handler


def test_invalid_token_fails_construction() -> None:
    with pytest.raises(InvalidTokenError):
        Bot("not a token", transport=FakeTransport())


def test_get_me_hits_method_url_without_query() -> None:
    bot, transport = _bot(ok({"id": 1, "is_bot": True, "first_name": "Probe"}))

    me = bot.get_me()

    assert me.id == 1
    assert str(transport.urls[0]) == "https://api.example.org/bot123:ABC/getMe"
    assert transport.timeouts == [None]


def test_get_updates_sends_only_given_params_and_keeps_offset() -> None:
    bot, transport = _bot(batch(5, 6))

    updates = bot.get_updates(offset=5, timeout=30)

    assert [u.update_id for u in updates] == [5, 6]
    assert transport.urls[0].query == b"offset=5&timeout=30"
    assert transport.timeouts == [40]
    assert bot.offset == 0


def test_get_updates_without_params() -> None:
    bot, transport = _bot(batch())

    assert bot.get_updates() == []
    assert transport.urls[0].query == b""


def test_send_message_params() -> None:
    message = {"message_id": 10, "date": 1, "chat": {"id": 42}, "text": "pong"}
    bot, transport = _bot(ok(message))

    sent = bot.send_message(42, "pong", parse_mode=ParseMode.HTML, disable_web_page_preview=True)

    assert sent.message_id == 10
    assert transport.urls[0].path.endswith("/sendMessage")
    assert list(transport.urls[0].params.multi_items()) == [
        ("chat_id", "42"),
        ("text", "pong"),
        ("parse_mode", "HTML"),
        ("disable_web_page_preview", "true"),
    ]


def test_api_error_is_raised_and_counted() -> None:
    metrics = Metrics(enabled=True)
    bot, _ = _bot(UNAUTHORIZED, metrics=metrics)

    with pytest.raises(APIError) as excinfo:
        bot.get_me()

    assert excinfo.value.description == "Unauthorized"
    assert metrics.registry.get_sample_value("bot_errors_total", {"kind": "api"}) == 1.0
    assert metrics.registry.get_sample_value("bot_requests_total", {"method": "getMe"}) == 1.0


def test_transport_error_is_raised_as_is() -> None:
    bot, _ = _bot(TransportError("connection refused"))

    with pytest.raises(TransportError):
        bot.get_me()


def test_long_poll_skips_redelivered_updates() -> None:
    log = []
    bot, transport = _bot(batch(5, 6), batch(6, 7), TransportError("down"))

    with pytest.raises(TransportError):
        bot.long_poll(_recorder(log))

    assert log == [(5, 6), (6, 7), (7, 8)]
    assert bot.offset == 8
    assert transport.sent_offsets() == ["0", "7", "8"]
    assert bot.poll_state is PollState.TERMINATED


def test_long_poll_defaults_timeout_to_thirty_seconds() -> None:
    bot, transport = _bot(TransportError("down"))

    with pytest.raises(TransportError):
        bot.long_poll(_recorder([]))

    assert transport.urls[0].params["timeout"] == "30"
    assert "limit" not in transport.urls[0].params
    assert transport.timeouts == [40]


def test_long_poll_passes_timeout_and_limit() -> None:
    bot, transport = _bot(TransportError("down"))

    with pytest.raises(TransportError):
        bot.long_poll(_recorder([]), timeout=5, limit=10)

    assert transport.urls[0].query == b"offset=0&limit=10&timeout=5"


def test_offset_follows_highest_id_for_gaps_and_reordering() -> None:
    log = []
    bot, _ = _bot(batch(10, 3, 12), batch(), batch(20), DecodeError("bad"))

    with pytest.raises(DecodeError):
        bot.long_poll(_recorder(log))

    assert log == [(10, 11), (12, 13), (20, 21)]
    assert bot.offset == 21


def test_handler_failure_propagates_after_offset_advanced() -> None:
    def handler(bot, update):
        raise RuntimeError("handler broke")

    bot, transport = _bot(batch(5, 6), batch(6))

    with pytest.raises(RuntimeError):
        bot.long_poll(handler)

    assert bot.offset == 6
    assert bot.poll_state is PollState.TERMINATED

    log = []
    stop = threading.Event()

    def resume(bot, update):
        log.append(update.update_id)
        stop.set()

    bot.long_poll(resume, stop_event=stop)

    assert log == [6]
    assert transport.sent_offsets() == ["0", "6"]


def test_skip_policy_continues_after_handler_failure() -> None:
    metrics = Metrics(enabled=True)
    stop = threading.Event()
    log = []

    def handler(bot, update):
        if update.update_id == 5:
            raise ValueError("bad update")
        log.append(update.update_id)
        stop.set()

    bot, _ = _bot(batch(5, 6), metrics=metrics)

    bot.long_poll(handler, stop_event=stop, handler_errors=HandlerErrorPolicy.SKIP)

    assert log == [6]
    assert bot.offset == 7
    assert bot.poll_state is PollState.IDLE
    assert metrics.registry.get_sample_value("bot_updates_total", {"outcome": "failed"}) == 1.0
    assert metrics.registry.get_sample_value("bot_updates_total", {"outcome": "dispatched"}) == 1.0


def test_stop_event_set_before_start_makes_no_request() -> None:
    stop = threading.Event()
    stop.set()
    bot, transport = _bot()

    bot.long_poll(_recorder([]), stop_event=stop)

    assert transport.urls == []
    assert bot.poll_state is PollState.IDLE


def test_stop_mid_batch_leaves_rest_for_next_poll() -> None:
    stop = threading.Event()
    log = []

    def handler(bot, update):
        log.append(update.update_id)
        stop.set()

    bot, transport = _bot(batch(5, 6), batch(6), TransportError("down"))

    bot.long_poll(handler, stop_event=stop)

    assert log == [5]
    assert bot.offset == 6

    resumed = []
    stop.clear()
    with pytest.raises(TransportError):
        bot.long_poll(_recorder(resumed))

    assert resumed == [(6, 7)]
    assert transport.sent_offsets() == ["0", "6", "7"]


def test_skipped_updates_are_counted() -> None:
    metrics = Metrics(enabled=True)
    bot, _ = _bot(batch(1), batch(1), TransportError("down"), metrics=metrics)

    with pytest.raises(TransportError):
        bot.long_poll(_recorder([]))

    assert metrics.registry.get_sample_value("bot_updates_total", {"outcome": "skipped"}) == 1.0


def test_from_settings_builds_idle_bot() -> None:
    settings = Settings(TELEGRAM_BOT_TOKEN=TOKEN, TELEGRAM_API_URL=API_URL, METRICS_ENABLED=False, _env_file=None)

    with Bot.from_settings(settings) as bot:
        assert bot.offset == 0
        assert bot.poll_state is PollState.IDLE
