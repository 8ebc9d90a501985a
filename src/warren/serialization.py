"""JSON encoding shared by responses, error bodies and the test client."""

from __future__ import annotations

from typing import Any

import msgspec


def _encode_fallback(value: Any) -> Any:
    # error handler keys and error details may hold classes and exceptions
    if isinstance(value, type):
        return value.__name__
    if isinstance(value, BaseException):
        return str(value)
    raise NotImplementedError(f"Objects of type {type(value).__name__} are not JSON serializable")


_encoder = msgspec.json.Encoder(enc_hook=_encode_fallback)
_decoder = msgspec.json.Decoder()


def json_encode(value: Any) -> bytes:
    """Serialize ``value`` to JSON bytes using msgspec."""

    return _encoder.encode(value)


def json_decode(data: bytes | str, *, type: Any = Any) -> Any:
    """Deserialize JSON ``data``, validating it against ``type`` when given."""

    if type is Any:
        return _decoder.decode(data)
    return msgspec.json.decode(data, type=type)
