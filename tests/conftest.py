"""Shared fixtures for chatview tests."""

import errno
import sqlite3
import tempfile
from unittest.mock import patch

import pytest

from chatview.config import Settings
from chatview.crypto import derive_key, encrypt_archive

# 2023-11-14 22:13:20 UTC
TS_BASE = 1_700_000_000
DAY = 86_400

SECRET = b"\x13\x37vendor-secret-blob\x00\xff"

SCHEMA = """
    CREATE TABLE message (
        msgId INTEGER PRIMARY KEY,
        talker TEXT NOT NULL,
        content TEXT,
        createTime INTEGER NOT NULL,
        type INTEGER NOT NULL,
        filePath TEXT,
        fileName TEXT,
        fileSize INTEGER,
        duration INTEGER,
        width INTEGER,
        height INTEGER,
        isGroupMessage INTEGER DEFAULT 0,
        sender TEXT,
        groupName TEXT
    );

    CREATE TABLE group_info (
        wxid TEXT PRIMARY KEY,
        name TEXT,
        avatar TEXT,
        owner TEXT,
        createTime INTEGER
    );

    CREATE TABLE group_member (
        groupId TEXT NOT NULL,
        wxid TEXT NOT NULL,
        nickname TEXT,
        avatar TEXT,
        joinTime INTEGER,
        role INTEGER DEFAULT 0,
        PRIMARY KEY (groupId, wxid)
    );
"""

_INSERT_MESSAGE = (
    "INSERT INTO message (msgId, talker, content, createTime, type, filePath, fileName, "
    "fileSize, duration, width, height, isGroupMessage, sender, groupName) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def _plain(msg_id, talker, content, ts, msg_type=1):
    return (msg_id, talker, content, ts, msg_type, None, None, None, None, None, None, 0, None, None)


def build_chat_db(path):
    """Create a decrypted-style chat database at *path*."""
    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()
    cursor.executescript(SCHEMA)

    # alice: 25 messages, one minute apart, msgId == position (1 = oldest).
    # Every third message is an image.
    alice = []
    for i in range(1, 26):
        msg_type = 3 if i % 3 == 0 else 1
        content = "Hello from alice" if i in (5, 10) else f"alice message {i}"
        alice.append(_plain(i, "alice", content, TS_BASE + i * 60, msg_type))
    cursor.executemany(_INSERT_MESSAGE, alice)

    # bob: 3 messages two days later
    cursor.executemany(
        _INSERT_MESSAGE,
        [
            _plain(101, "bob", "hello bob here", TS_BASE + 2 * DAY + 1),
            _plain(102, "bob", "Hello again", TS_BASE + 2 * DAY + 2),
            _plain(103, "bob", "voice note", TS_BASE + 2 * DAY + 3, 34),
        ],
    )

    # group: 5 flagged group messages and one unflagged system message
    group_rows = []
    for n in range(1, 6):
        group_rows.append((
            200 + n, "room@chatroom", f"group note {n}", TS_BASE + DAY + n, 1,
            None, None, None, None, None, None, 1,
            "alice" if n % 2 else "bob", "Weekend Plans",
        ))
    group_rows.append(_plain(206, "room@chatroom", "alice joined", TS_BASE + DAY + 10, 10000))
    cursor.executemany(_INSERT_MESSAGE, group_rows)

    # an attachment message
    cursor.execute(
        _INSERT_MESSAGE,
        (301, "carol", "[photo]", TS_BASE + 3 * DAY, 3, None, "photo.png", 104,
         None, 640, 480, 0, None, None),
    )

    cursor.execute(
        "INSERT INTO group_info (wxid, name, avatar, owner, createTime) VALUES (?, ?, ?, ?, ?)",
        ("room@chatroom", "Weekend Plans", None, "alice", TS_BASE - DAY),
    )
    cursor.executemany(
        "INSERT INTO group_member (groupId, wxid, nickname, avatar, joinTime, role) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [
            ("room@chatroom", "alice", "Alice", None, TS_BASE - DAY, 1),
            ("room@chatroom", "bob", "Bob", None, TS_BASE, 0),
            ("room@chatroom", "carol", "Carol", None, TS_BASE + 100, 0),
        ],
    )
    cursor.execute(
        "INSERT INTO group_info (wxid, name, avatar, owner, createTime) VALUES (?, ?, ?, ?, ?)",
        ("empty@chatroom", "Nobody Here", None, "dave", TS_BASE),
    )

    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def chat_db(tmp_path):
    """Path to a plaintext chat database with test data."""
    return build_chat_db(tmp_path / "plain.db")


@pytest.fixture
def install_dir(tmp_path):
    """A fake vendor installation directory with marker and secret files."""
    path = tmp_path / "WeChat"
    path.mkdir()
    (path / "WeChat.exe").write_bytes(b"MZ")
    (path / "DBPass.Bin").write_bytes(SECRET)
    return str(path)


@pytest.fixture
def encrypted_archive(tmp_path, chat_db):
    """The chat_db fixture encrypted with the key derived from SECRET."""
    with open(chat_db, "rb") as f:
        plaintext = f.read()
    archive = tmp_path / "MSG.db"
    archive.write_bytes(encrypt_archive(plaintext, derive_key(SECRET)))
    return str(archive)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        export_dir=str(tmp_path / "exports"),
        cache_ttl=300,
    )


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def disk_full():
    """Make atomic writes fail halfway through, as on a full disk."""
    real_tempfile = tempfile.NamedTemporaryFile

    def half_writing_tempfile(*args, **kwargs):
        tmp = real_tempfile(*args, **kwargs)
        real_write = tmp.write

        def write(data):
            real_write(data[: len(data) // 2])
            raise OSError(errno.ENOSPC, "No space left on device")

        tmp.write = write
        return tmp

    with patch("chatview.files.tempfile.NamedTemporaryFile", side_effect=half_writing_tempfile):
        yield
