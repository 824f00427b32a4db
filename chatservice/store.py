"""SQLite storage behind the chat service repositories."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from .models import User, Wallpaper

_NOW_MS = "(CAST(ROUND((julianday('now') - 2440587.5) * 86400000) AS INTEGER))"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    username TEXT NOT NULL,
    email TEXT NOT NULL DEFAULT '',
    profile_pic_url TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    status_updated_at REAL
);
CREATE TABLE IF NOT EXISTS friends (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    friend_id1 INTEGER NOT NULL,
    friend_id2 INTEGER NOT NULL,
    friendship_status TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS call_details (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    call_id INTEGER NOT NULL,
    caller_id INTEGER NOT NULL,
    call_duration REAL NOT NULL DEFAULT 0,
    filehash TEXT NOT NULL DEFAULT '',
    aws_url TEXT NOT NULL DEFAULT '',
    start_time REAL NOT NULL DEFAULT 0,
    end_time REAL NOT NULL DEFAULT 0,
    user_ids TEXT NOT NULL DEFAULT '[]',
    deleted_by_user_ids TEXT NOT NULL DEFAULT '[]',
    is_audio_call INTEGER NOT NULL DEFAULT 0,
    is_missed_call INTEGER NOT NULL DEFAULT 0,
    is_group_call INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS status (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    user_id INTEGER NOT NULL,
    username TEXT NOT NULL DEFAULT '',
    status_type TEXT NOT NULL DEFAULT '',
    message TEXT NOT NULL DEFAULT '',
    file_hash TEXT NOT NULL DEFAULT '',
    aws_url TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    reporter_id INTEGER NOT NULL,
    reportee_id INTEGER NOT NULL DEFAULT 0,
    group_id INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS blocked_contacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    blocker_id INTEGER NOT NULL,
    blockee_id INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS wallpapers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    wallpaper_url TEXT NOT NULL,
    wallpaper_type TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS chat_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE,
    group_chat_type TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    group_name TEXT NOT NULL,
    admin_ids TEXT NOT NULL DEFAULT '[]',
    chat_id INTEGER NOT NULL DEFAULT 0,
    total_users INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    blocked_time REAL,
    subject_timestamp REAL NOT NULL DEFAULT 0,
    subject_owner_id INTEGER NOT NULL DEFAULT 0,
    profile_pic_url TEXT NOT NULL DEFAULT '',
    user_ids TEXT NOT NULL DEFAULT '[]',
    pending_user_ids TEXT NOT NULL DEFAULT '[]'
);
CREATE TABLE IF NOT EXISTS backups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE,
    filehash TEXT NOT NULL DEFAULT '',
    file_size INTEGER NOT NULL DEFAULT 0,
    file_name TEXT NOT NULL DEFAULT '',
    backup_nature TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS reviews (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at REAL NOT NULL DEFAULT {_NOW_MS},
    concert_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    rating REAL NOT NULL,
    feedback TEXT NOT NULL DEFAULT ''
);
"""


class Database:
    """A SQLite connection holding every table the service uses.

    Statements run in autocommit mode unless grouped with ``transaction()``.
    Timestamps are stored as milliseconds since the epoch; id lists as JSON text.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._conn.executescript(_SCHEMA)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Run the enclosed statements atomically; nested blocks join the outer one."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return
            self._conn.execute("BEGIN")
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._depth = 0

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, tuple(params))

    def add_user(self, username: str, email: str = "", profile_pic_url: str = "") -> User:
        cursor = self.execute(
            "INSERT INTO users (username, email, profile_pic_url) VALUES (?, ?, ?)",
            (username, email, profile_pic_url),
        )
        (row,) = self.query("SELECT created_at FROM users WHERE id = ?", (cursor.lastrowid,))
        return User(
            id=cursor.lastrowid,
            username=username,
            email=email,
            profile_pic_url=profile_pic_url,
            created_at=float(row["created_at"]),
        )

    def add_friendship(self, user_id: int, friend_id: int, status: str = "ACCEPTED") -> None:
        self.execute(
            "INSERT INTO friends (friend_id1, friend_id2, friendship_status) VALUES (?, ?, ?)",
            (user_id, friend_id, status),
        )

    def add_wallpaper(self, url: str, wallpaper_type: str) -> Wallpaper:
        cursor = self.execute(
            "INSERT INTO wallpapers (wallpaper_url, wallpaper_type) VALUES (?, ?)",
            (url, wallpaper_type),
        )
        (row,) = self.query("SELECT created_at FROM wallpapers WHERE id = ?", (cursor.lastrowid,))
        return Wallpaper(
            url=url,
            wallpaper_type=wallpaper_type,
            id=cursor.lastrowid,
            created_at=float(row["created_at"]),
        )