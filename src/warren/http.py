"""HTTP status codes and how errors map onto them."""

from __future__ import annotations

from enum import IntEnum
from http import HTTPStatus


class Status(IntEnum):
    """Status codes the framework produces on its own."""

    OK = 200
    NO_CONTENT = 204
    FOUND = 302
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    INTERNAL_SERVER_ERROR = 500


def ensure_status(status: int | Status) -> int:
    code = int(status)
    if not 100 <= code <= 599:
        raise ValueError(f"Invalid HTTP status code: {status}")
    return code


def reason_phrase(status: int | Status) -> str:
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return "Unknown Status"


def status_for(error: BaseException) -> int:
    """Return the response status an error stands for.

    Any exception may carry an integer ``status`` attribute; everything else
    is a server error.
    """

    status = getattr(error, "status", None)
    if isinstance(status, int) and not isinstance(status, bool) and 100 <= status <= 599:
        return int(status)
    return int(Status.INTERNAL_SERVER_ERROR)


__all__ = ["Status", "ensure_status", "reason_phrase", "status_for"]
