from __future__ import annotations


class BotError(Exception):
    """Base class for every failure of a Bot API call."""

    kind = "bot"


class TransportError(BotError):
    """The HTTP exchange itself failed (connect, read, timeout)."""

    kind = "transport"


class DecodeError(BotError):
    """The response body did not match the envelope or the method's payload schema."""

    kind = "decode"


class APIError(BotError):
    """The server answered ``ok: false`` with a description."""

    kind = "api"

    def __init__(self, description: str, error_code: int | None = None):
        super().__init__(description)
        self.description = description
        self.error_code = error_code


class InvalidStateError(BotError):
    """The envelope contradicts itself, e.g. ``ok: true`` without a result."""

    kind = "invalid_state"


class InvalidTokenError(ValueError):
    """Raised at construction when a token cannot form a Bot API endpoint."""
