import httpx
import pytest

from tgpoll.bot.errors import TransportError
from tgpoll.bot.transport import HttpTransport

URL = httpx.URL("https://api.example.org/bot123:ABC/getMe")


def _transport(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransport(client=client, **kwargs), client


def test_get_returns_body_and_asks_to_close_connection() -> None:
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, text='{"ok": true, "result": []}')

    transport, _ = _transport(handler)

    assert transport.get(URL) == '{"ok": true, "result": []}'
    assert seen[0].method == "GET"
    assert seen[0].headers["connection"] == "close"
    assert seen[0].url == URL


def test_error_status_body_is_returned_for_the_decoder() -> None:
    transport, _ = _transport(lambda request: httpx.Response(401, text='{"ok": false, "description": "Unauthorized"}'))

    assert transport.get(URL) == '{"ok": false, "description": "Unauthorized"}'


def test_network_failure_is_transport_error() -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = _transport(handler)

    with pytest.raises(TransportError) as excinfo:
        transport.get(URL)

    assert "connection refused" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_timeout_is_transport_error() -> None:
    def handler(request):
        raise httpx.ReadTimeout("", request=request)

    transport, _ = _transport(handler)

    with pytest.raises(TransportError) as excinfo:
        transport.get(URL)

    assert str(excinfo.value) == "ReadTimeout"


def test_per_call_timeout_overrides_read_timeout() -> None:
    seen = []

    def handler(request):
        seen.append(request.extensions["timeout"])
        return httpx.Response(200, text="{}")

    transport, _ = _transport(handler, request_timeout_sec=60.0, connect_timeout_sec=3.0)
    transport.get(URL)
    transport.get(URL, timeout=40)

    assert seen[0]["read"] == 60.0
    assert seen[1]["read"] == 40
    assert seen[1]["connect"] == 3.0


def test_close_closes_client() -> None:
    transport, client = _transport(lambda request: httpx.Response(200))

    with transport:
        pass

    assert client.is_closed
