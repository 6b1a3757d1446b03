"""Record types returned by the query layer."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any


class MessageType(IntEnum):
    TEXT = 1
    IMAGE = 3
    VOICE = 34
    VIDEO = 43
    FILE = 49
    LINK = 49  # alias of FILE
    SYSTEM = 10000
    GROUP_SYSTEM = 10002


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class ChatMessage:
    """One archived message. Attachment and group fields are optional."""

    msg_id: int
    talker: str
    content: str | None
    create_time: int
    type: int
    file_path: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    duration: int | None = None
    width: int | None = None
    height: int | None = None
    is_group_message: bool = False
    sender: str | None = None
    group_name: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ChatMessage:
        keys = row.keys()

        def col(name: str) -> Any:
            return row[name] if name in keys else None

        return cls(
            msg_id=row["msgId"],
            talker=row["talker"],
            content=row["content"],
            create_time=row["createTime"],
            type=row["type"],
            file_path=col("filePath"),
            file_name=col("fileName"),
            file_size=col("fileSize"),
            duration=col("duration"),
            width=col("width"),
            height=col("height"),
            is_group_message=col("isGroupMessage") == 1,
            sender=col("sender"),
            group_name=col("groupName"),
        )

    @property
    def display_sender(self) -> str:
        """Who to show as the author: group sender if known, else the talker."""
        return self.sender or self.talker

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass(frozen=True)
class MessageTypeStats:
    type: int
    count: int


@dataclass(frozen=True)
class DailyStats:
    date: str
    count: int


@dataclass(frozen=True)
class TalkerStats:
    talker: str
    count: int


@dataclass(frozen=True)
class ChatStats:
    total_messages: int
    total_talkers: int
    message_types: list[MessageTypeStats] = field(default_factory=list)
    daily_messages: list[DailyStats] = field(default_factory=list)
    top_talkers: list[TalkerStats] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GroupMember:
    member_id: str
    nickname: str | None
    avatar: str | None
    join_time: int | None
    role: int | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> GroupMember:
        return cls(
            member_id=row["wxid"],
            nickname=row["nickname"],
            avatar=row["avatar"],
            join_time=row["joinTime"],
            role=row["role"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GroupInfo:
    group_id: str
    name: str | None
    avatar: str | None
    owner: str | None
    create_time: int | None
    member_count: int
    members: list[GroupMember] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
