from __future__ import annotations

from typing import Optional

import httpx

from tgpoll.infra.logging import get_logger

from .endpoint import describe
from .errors import TransportError

logger = get_logger(__name__)


class HttpTransport:
    """Blocking GET against the Bot API; one connection per exchange."""

    def __init__(
        self,
        request_timeout_sec: float = 60.0,
        connect_timeout_sec: float = 3.0,
        client: httpx.Client | None = None,
    ):
        self._timeout = httpx.Timeout(timeout=request_timeout_sec, connect=connect_timeout_sec)
        self._connect_timeout_sec = connect_timeout_sec
        self._client = client or httpx.Client(timeout=self._timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get(self, url: httpx.URL, timeout: Optional[float] = None) -> str:
        request_timeout = (
            httpx.Timeout(timeout=timeout, connect=self._connect_timeout_sec) if timeout is not None else self._timeout
        )
        try:
            response = self._client.get(url, headers={"Connection": "close"}, timeout=request_timeout)
        except httpx.HTTPError as exc:
            logger.warning(
                "bot_transport_error",
                extra={"method": describe(url), "error": str(exc), "error_type": type(exc).__name__},
            )
            raise TransportError(str(exc) or type(exc).__name__) from exc
        return response.text
