from __future__ import annotations

import re

import httpx

from .errors import InvalidTokenError
from .params import Params

PLACEHOLDER_METHOD = "dummy"

_FORBIDDEN_TOKEN_CHARS = re.compile(r"[\s/?#]")


def base_endpoint(token: str, api_url: str) -> httpx.URL:
    """Build ``<api_url>/bot<token>/dummy``; the last segment is swapped per call."""
    if not token or _FORBIDDEN_TOKEN_CHARS.search(token):
        raise InvalidTokenError("Invalid token: it must be non-empty and contain no whitespace, '/', '?' or '#'")
    try:
        url = httpx.URL(f"{api_url.rstrip('/')}/bot{token}/{PLACEHOLDER_METHOD}")
    except httpx.InvalidURL as exc:
        raise InvalidTokenError(f"Invalid token! ({exc})") from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise InvalidTokenError(f"Invalid API URL: {api_url!r}")
    return url


def compose(base: httpx.URL, method: str, params: Params) -> httpx.URL:
    # Work on the encoded path so escapes inside the token segment survive.
    raw_path = base.raw_path.partition(b"?")[0]
    if raw_path.strip(b"/"):
        segments = raw_path.split(b"/")
        segments[-1] = method.encode("ascii")
        raw_path = b"/".join(segments)
    return base.copy_with(raw_path=raw_path).copy_with(params=params)


def describe(url: httpx.URL) -> str:
    """Loggable form of a request URL: the method segment only, never the token."""
    return url.path.rsplit("/", 1)[-1]
