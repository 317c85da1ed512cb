"""
Exception types shared by the API handlers and storage layers.

Each error carries the HTTP status it maps to and the message shown to
the client. The application turns them into ``{"error": message}``
responses in one place (see ``dropit.app``).
"""

from __future__ import annotations


class DropitError(Exception):
    status_code = 500
    default_message = "服务器错误"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(DropitError):
    status_code = 400
    default_message = "请求参数无效"


class AuthenticationRequired(DropitError):
    status_code = 401
    default_message = "未授权访问"


class AuthenticationExpired(DropitError):
    status_code = 401
    default_message = "认证失效"


class InvalidPassword(DropitError):
    status_code = 401
    default_message = "密码错误"


class StorageError(DropitError):
    default_message = "存储操作失败"


class KvError(DropitError):
    default_message = "数据存储失败"
