"""Read-only queries over the decrypted chat database."""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from .cache import CacheService, make_key
from .constants import SEARCH_LIMIT, STATS_DAYS, STATS_TOP_TALKERS
from .errors import DatabaseNotFound, GroupNotFound, MessageNotFound, QueryFailed
from .models import (
    ChatMessage,
    ChatStats,
    DailyStats,
    GroupInfo,
    GroupMember,
    MessageTypeStats,
    TalkerStats,
)

_logger = logging.getLogger(__name__)

# SQL queries
_MESSAGE_COLUMNS = """
    m.msgId,
    m.talker,
    m.content,
    m.createTime,
    m.type,
    m.filePath,
    m.fileName,
    m.fileSize,
    m.duration,
    m.width,
    m.height,
    m.isGroupMessage,
    m.sender,
    m.groupName
"""

_SQL_LIST_TALKERS = "SELECT DISTINCT talker FROM message ORDER BY talker"

_SQL_CHAT_HISTORY = f"""
SELECT {_MESSAGE_COLUMNS}
FROM message m
WHERE m.talker = ?
ORDER BY m.createTime DESC, m.msgId DESC
LIMIT ? OFFSET ?
"""

_SQL_GROUP_CHAT_HISTORY = f"""
SELECT {_MESSAGE_COLUMNS}
FROM message m
WHERE m.talker = ? AND m.isGroupMessage = 1
ORDER BY m.createTime DESC, m.msgId DESC
LIMIT ? OFFSET ?
"""

_SQL_MESSAGE = f"""
SELECT {_MESSAGE_COLUMNS}
FROM message m
WHERE m.msgId = ?
"""

_SQL_SEARCH = """
SELECT msgId, talker, content, createTime, type
FROM message
WHERE {where}
ORDER BY createTime DESC, msgId DESC
LIMIT ?
"""

_SQL_COUNT_MESSAGES = "SELECT COUNT(*) AS count FROM message"
_SQL_COUNT_TALKERS = "SELECT COUNT(DISTINCT talker) AS count FROM message"
_SQL_TYPE_STATS = """
SELECT type, COUNT(*) AS count
FROM message
GROUP BY type
ORDER BY count DESC, type ASC
"""
_SQL_DAILY_STATS = """
SELECT date(createTime, 'unixepoch') AS date, COUNT(*) AS count
FROM message
GROUP BY date
ORDER BY date DESC
LIMIT ?
"""
_SQL_TOP_TALKERS = """
SELECT talker, COUNT(*) AS count
FROM message
GROUP BY talker
ORDER BY count DESC, talker ASC
LIMIT ?
"""

_SQL_GROUP_INFO = """
SELECT
    g.wxid,
    g.name,
    g.avatar,
    g.owner,
    g.createTime,
    COUNT(gm.wxid) AS memberCount
FROM group_info g
LEFT JOIN group_member gm ON g.wxid = gm.groupId
WHERE g.wxid = ?
GROUP BY g.wxid
"""

_SQL_GROUP_MEMBERS = """
SELECT wxid, nickname, avatar, joinTime, role
FROM group_member
WHERE groupId = ?
ORDER BY joinTime DESC
"""


def _offset(page: int, page_size: int) -> int:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return (page - 1) * page_size


class QueryStore:
    """Read-only interface to a decrypted chat database.

    The connection is opened once and never written through, so every query
    method can be called in any order. Pass a :class:`CacheService` to memoize
    history and search results.
    """

    def __init__(
        self,
        db_path: str,
        cache: CacheService | None = None,
        logger: logging.Logger | None = None,
    ):
        self.db_path = db_path
        self.cache = cache
        self.logger = logger or _logger
        if not os.path.isfile(self.db_path):
            raise DatabaseNotFound(
                f"Database not found at {self.db_path}\n"
                "Decrypt an archive first.",
                {"db_path": self.db_path},
            )
        uri = Path(self.db_path).absolute().as_uri() + "?mode=ro"
        try:
            # Read-only, so one connection can be shared across threads.
            self.conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise QueryFailed(
                f"Cannot open database at {self.db_path}: {e}",
                {"db_path": self.db_path},
            ) from e
        self.conn.row_factory = sqlite3.Row
        self.logger.info("Opened database %s", self.db_path)

    def close(self):
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _fetch(self, operation: str, sql: str, params: Sequence[Any], **context) -> list[sqlite3.Row]:
        """Run *sql* and wrap any storage failure as QueryFailed."""
        try:
            return self.conn.execute(sql, params).fetchall()
        except (sqlite3.Error, ValueError) as e:
            self.logger.error("%s failed: %s", operation, e)
            raise QueryFailed(f"{operation} failed: {e}", context) from e

    def _cached(self, key: str) -> list[ChatMessage] | None:
        if self.cache is None:
            return None
        messages = self.cache.get_messages(key)
        if messages is None:
            return None
        self.logger.debug("Cache hit for %s", key)
        return list(messages)

    def _remember(self, key: str, messages: list[ChatMessage]) -> None:
        if self.cache is not None:
            self.cache.set_messages(key, list(messages))

    def list_talkers(self) -> list[str]:
        """Return every distinct talker, sorted."""
        rows = self._fetch("list_talkers", _SQL_LIST_TALKERS, ())
        return [row["talker"] for row in rows]

    def chat_history(self, talker: str, page: int, page_size: int) -> list[ChatMessage]:
        """Return one page of *talker*'s messages, newest first. Pages start at 1."""
        context = {"talker": talker, "page": page, "page_size": page_size}
        key = make_key("chat_history", talker, page, page_size)
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            offset = _offset(page, page_size)
        except ValueError as e:
            raise QueryFailed(str(e), context) from e
        rows = self._fetch("chat_history", _SQL_CHAT_HISTORY, (talker, page_size, offset), **context)
        messages = [ChatMessage.from_row(row) for row in rows]
        self._remember(key, messages)
        return messages

    def search(
        self,
        keyword: str,
        date_range: tuple[int, int] | None = None,
        message_types: Iterable[int] | None = None,
        talker: str | None = None,
    ) -> list[ChatMessage]:
        """Find messages whose content contains *keyword* (case-sensitive).

        *date_range* is an inclusive ``(start, end)`` pair of epoch seconds.
        At most 100 results are returned, newest first.
        """
        types = sorted(set(message_types)) if message_types else []
        context = {
            "keyword": keyword,
            "date_range": list(date_range) if date_range else None,
            "message_types": types,
            "talker": talker,
        }
        key = make_key("search", keyword, date_range, types, talker)
        cached = self._cached(key)
        if cached is not None:
            return cached

        conditions = ["instr(content, ?) > 0"]
        params: list[Any] = [keyword]

        if date_range:
            start, end = date_range
            conditions.append("createTime BETWEEN ? AND ?")
            params.extend([int(start), int(end)])

        if types:
            placeholders = ",".join("?" for _ in types)
            conditions.append(f"type IN ({placeholders})")
            params.extend(int(t) for t in types)

        if talker:
            conditions.append("talker = ?")
            params.append(talker)

        params.append(SEARCH_LIMIT)
        sql = _SQL_SEARCH.format(where=" AND ".join(conditions))
        rows = self._fetch("search", sql, params, **context)
        messages = [ChatMessage.from_row(row) for row in rows]
        self._remember(key, messages)
        return messages

    def statistics(self) -> ChatStats:
        """Aggregate counts across the whole archive."""
        total = self._fetch("statistics", _SQL_COUNT_MESSAGES, ())[0]["count"]
        talkers = self._fetch("statistics", _SQL_COUNT_TALKERS, ())[0]["count"]
        types = self._fetch("statistics", _SQL_TYPE_STATS, ())
        daily = self._fetch("statistics", _SQL_DAILY_STATS, (STATS_DAYS,))
        top = self._fetch("statistics", _SQL_TOP_TALKERS, (STATS_TOP_TALKERS,))

        return ChatStats(
            total_messages=total,
            total_talkers=talkers,
            message_types=[MessageTypeStats(row["type"], row["count"]) for row in types],
            daily_messages=[DailyStats(row["date"], row["count"]) for row in daily],
            top_talkers=[TalkerStats(row["talker"], row["count"]) for row in top],
        )

    def group_info(self, group_id: str) -> GroupInfo:
        """Return group metadata with its current member roster."""
        rows = self._fetch("group_info", _SQL_GROUP_INFO, (group_id,), group_id=group_id)
        if not rows:
            raise GroupNotFound(f"Group not found: {group_id}", {"group_id": group_id})
        row = rows[0]
        return GroupInfo(
            group_id=row["wxid"],
            name=row["name"],
            avatar=row["avatar"],
            owner=row["owner"],
            create_time=row["createTime"],
            member_count=row["memberCount"],
            members=self.group_members(group_id),
        )

    def group_members(self, group_id: str) -> list[GroupMember]:
        """Return the members of *group_id*, most recently joined first."""
        rows = self._fetch("group_members", _SQL_GROUP_MEMBERS, (group_id,), group_id=group_id)
        return [GroupMember.from_row(row) for row in rows]

    def group_chat_history(self, group_id: str, page: int, page_size: int) -> list[ChatMessage]:
        """Like :meth:`chat_history`, restricted to messages flagged as group messages."""
        context = {"group_id": group_id, "page": page, "page_size": page_size}
        key = make_key("group_chat_history", group_id, page, page_size)
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            offset = _offset(page, page_size)
        except ValueError as e:
            raise QueryFailed(str(e), context) from e
        rows = self._fetch(
            "group_chat_history", _SQL_GROUP_CHAT_HISTORY, (group_id, page_size, offset), **context
        )
        messages = [ChatMessage.from_row(row) for row in rows]
        self._remember(key, messages)
        return messages

    def message(self, msg_id: int) -> ChatMessage:
        """Return a single message by id."""
        rows = self._fetch("message", _SQL_MESSAGE, (msg_id,), msg_id=msg_id)
        if not rows:
            raise MessageNotFound(f"Message not found: {msg_id}", {"msg_id": msg_id})
        return ChatMessage.from_row(rows[0])
