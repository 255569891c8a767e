"""The uniform response body returned by every endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .codes import Code, get_msg


@dataclass(frozen=True)
class Response:
    """A status code, optional data, a message and an error text."""

    status: int
    data: Any = None
    msg: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the response as a JSON-ready mapping."""
        data = self.data
        to_dict = getattr(data, "to_dict", None)
        if callable(to_dict):
            data = to_dict()
        return {
            "status": int(self.status),
            "data": data,
            "msg": self.msg,
            "error": self.error,
        }


def success(data: Any = None) -> Response:
    """Build a successful response carrying ``data``."""
    return Response(int(Code.SUCCESS), data, get_msg(Code.SUCCESS), "")


def failure(error: object) -> Response:
    """Build an error response describing ``error``."""
    return Response(int(Code.ERROR), None, get_msg(Code.ERROR), str(error))