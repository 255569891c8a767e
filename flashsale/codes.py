"""Response status codes and their messages."""

from __future__ import annotations

from enum import IntEnum


class Code(IntEnum):
    """Status codes carried in every response."""

    SUCCESS = 200
    NOT_EXIST_IDENTIFIER = 202
    INVALID_PARAMS = 400
    ERROR = 500


_MESSAGES: dict[int, str] = {
    Code.SUCCESS: "成功!",
    Code.NOT_EXIST_IDENTIFIER: "该第三方账号未绑定",
    Code.ERROR: "致命错误!",
    Code.INVALID_PARAMS: "请求参数有误!",
}


def get_msg(code: int) -> str:
    """Return the message for a code, falling back to the error message."""
    return _MESSAGES.get(int(code), _MESSAGES[Code.ERROR])