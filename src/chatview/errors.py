"""Error taxonomy shared by every chatview component.

Each error carries a stable ``code`` and a ``details`` dict with the paths or
parameters involved, so glue layers can surface a uniform shape regardless of
which component failed.
"""

from __future__ import annotations

from typing import Any


class ChatViewError(Exception):
    """Base class for all chatview failures."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: _plain(v) for k, v in self.details.items()},
        }


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return str(value)


class PathNotFound(ChatViewError, FileNotFoundError):
    code = "PATH_NOT_FOUND"


class InstallPathNotFound(PathNotFound):
    code = "INSTALL_PATH_NOT_FOUND"


class SecretNotFound(PathNotFound):
    code = "SECRET_NOT_FOUND"


class ArchiveNotFound(PathNotFound):
    code = "ARCHIVE_NOT_FOUND"


class DatabaseNotFound(PathNotFound):
    code = "DB_NOT_FOUND"


class GroupNotFound(PathNotFound):
    code = "GROUP_NOT_FOUND"


class MessageNotFound(PathNotFound):
    code = "MESSAGE_NOT_FOUND"


class EmptyOrTooShort(ChatViewError, ValueError):
    code = "EMPTY_OR_TOO_SHORT"


class SecretEmpty(EmptyOrTooShort, SecretNotFound):
    code = "SECRET_EMPTY"


class ArchiveEmpty(EmptyOrTooShort):
    code = "ARCHIVE_EMPTY"


class ArchiveTooShort(EmptyOrTooShort):
    code = "ARCHIVE_TOO_SHORT"


class DecryptionFailed(ChatViewError, ValueError):
    code = "DECRYPT_FAILED"


class QueryFailed(ChatViewError):
    code = "DB_QUERY_FAILED"


class InvalidFormat(ChatViewError, ValueError):
    code = "EXPORT_INVALID_FORMAT"


class WriteFailed(ChatViewError, OSError):
    code = "WRITE_FAILED"


class UnknownError(ChatViewError):
    code = "UNKNOWN_ERROR"


def wrap_error(error: BaseException) -> ChatViewError:
    """Return *error* if it is already a ChatViewError, else wrap it."""
    if isinstance(error, ChatViewError):
        return error
    wrapped = UnknownError(str(error) or "An unknown error occurred", {"error": repr(error)})
    wrapped.__cause__ = error
    return wrapped
