"""Boundary operations: one object owning the decrypt → query → export chain.

Glue layers (CLI, IPC handlers) call these methods and surface errors as-is;
every failure leaves as a :class:`~chatview.errors.ChatViewError`.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterable

from .cache import CacheService
from .config import Settings
from .decrypt import Decryptor
from .errors import ChatViewError, DatabaseNotFound, wrap_error
from .exporter import Exporter
from .files import FileService
from .models import ChatMessage, ChatStats, GroupInfo, GroupMember
from .store import QueryStore


def _boundary(method):
    """Re-raise anything that is not already a ChatViewError as UnknownError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ChatViewError:
            raise
        except Exception as e:
            self.logger.error("%s failed: %s", method.__name__, e)
            raise wrap_error(e) from e

    return wrapper


class ChatView:
    def __init__(self, settings: Settings | None = None, logger: logging.Logger | None = None):
        self.settings = settings or Settings.from_env()
        self.logger = logger or logging.getLogger("chatview")
        self.cache = CacheService(self.settings.cache_ttl, logger=self.logger)
        self.decryptor = Decryptor(self.settings.decrypted_db_path, logger=self.logger)
        self.files = FileService(self.settings.files_dir, cache=self.cache, logger=self.logger)
        self.store: QueryStore | None = None
        self.exporter: Exporter | None = None

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None
            self.exporter = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _require_store(self) -> QueryStore:
        if self.store is None:
            raise DatabaseNotFound("Database is not open. Decrypt an archive first.")
        return self.store

    def _require_exporter(self) -> Exporter:
        self._require_store()
        assert self.exporter is not None
        return self.exporter

    @_boundary
    def decrypt_database(self, archive_path: str, install_path: str) -> str:
        """Decrypt *archive_path* and open the result for querying."""
        db_path = self.decryptor.decrypt(archive_path, install_path)
        self.open_database(db_path)
        return db_path

    @_boundary
    def open_database(self, db_path: str | None = None) -> None:
        """Open an already-decrypted database (defaults to the fixed output path)."""
        self.close()
        self.cache.clear()
        self.store = QueryStore(
            db_path or self.settings.decrypted_db_path, cache=self.cache, logger=self.logger
        )
        self.exporter = Exporter(self.store, self.settings.export_dir, logger=self.logger)

    @_boundary
    def get_talkers(self) -> list[str]:
        return self._require_store().list_talkers()

    @_boundary
    def get_chat_history(self, talker: str, page: int, page_size: int) -> list[ChatMessage]:
        return self._require_store().chat_history(talker, page, page_size)

    @_boundary
    def search_messages(
        self,
        keyword: str,
        date_range: tuple[int, int] | None = None,
        message_types: Iterable[int] | None = None,
        talker: str | None = None,
    ) -> list[ChatMessage]:
        return self._require_store().search(keyword, date_range, message_types, talker)

    @_boundary
    def get_chat_statistics(self) -> ChatStats:
        return self._require_store().statistics()

    @_boundary
    def get_group_info(self, group_id: str) -> GroupInfo:
        return self._require_store().group_info(group_id)

    @_boundary
    def get_group_members(self, group_id: str) -> list[GroupMember]:
        return self._require_store().group_members(group_id)

    @_boundary
    def get_group_chat_history(self, group_id: str, page: int, page_size: int) -> list[ChatMessage]:
        return self._require_store().group_chat_history(group_id, page, page_size)

    @_boundary
    def get_message(self, msg_id: int) -> ChatMessage:
        return self._require_store().message(msg_id)

    @_boundary
    def export_chat_history(self, talker: str, fmt: str) -> str:
        return self._require_exporter().export_history(talker, fmt)

    @_boundary
    def export_search_results(
        self,
        keyword: str,
        date_range: tuple[int, int] | None = None,
        message_types: Iterable[int] | None = None,
        talker: str | None = None,
        fmt: str = "json",
    ) -> str:
        return self._require_exporter().export_search(keyword, date_range, message_types, talker, fmt)

    @_boundary
    def save_file(self, message: ChatMessage) -> str:
        return self.files.save_file(message)
