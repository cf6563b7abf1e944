from __future__ import annotations

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, StrictBool, StrictStr, ValidationError, field_validator

from .errors import APIError, DecodeError, InvalidStateError
from .types import ApiMethod

T = TypeVar("T")

INVALID_RESPONSE = "Invalid server response"


class Envelope(BaseModel):
    ok: StrictBool
    result: Any = None
    description: Optional[StrictStr] = None
    error_code: Optional[int] = None

    @field_validator("error_code", mode="before")
    @classmethod
    def drop_malformed_error_code(cls, value: Any) -> Optional[int]:
        # Informational only; a bad code must not change how the envelope is classified.
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None


def parse_envelope(body: str | bytes) -> Envelope:
    try:
        return Envelope.model_validate_json(body)
    except ValidationError as exc:
        raise DecodeError(str(exc)) from exc


def decode_envelope(body: str | bytes, method: ApiMethod[T]) -> T:
    """Classify a response body into the method's payload or one of the error kinds.

    A body that is not an envelope raises :class:`DecodeError`; ``ok: false``
    with a description raises :class:`APIError`; ``ok: true`` with a result
    returns the result decoded through ``method``. Any other combination is a
    contract violation by the server and raises :class:`InvalidStateError`.
    """
    envelope = parse_envelope(body)
    if not envelope.ok and envelope.description is not None:
        raise APIError(envelope.description, error_code=envelope.error_code)
    if envelope.ok and envelope.result is not None:
        try:
            return method.decode(envelope.result)
        except ValidationError as exc:
            raise DecodeError(f"{method.name}: {exc}") from exc
    raise InvalidStateError(INVALID_RESPONSE)
