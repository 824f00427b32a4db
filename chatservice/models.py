"""Data types shared by the chat service repositories."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PAGE_LIMIT = 10


class ServiceError(Exception):
    """A request that the service refuses, with the HTTP-style code to report."""

    def __init__(self, message: str, code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass
class Response:
    """Outcome of a successful repository call."""

    message: str
    code: int = 200
    data: Any = None


@dataclass(frozen=True)
class Pagination:
    """Page window taken from a request's query parameters."""

    limit: int = DEFAULT_PAGE_LIMIT
    page: int = 0

    @property
    def offset(self) -> int:
        return self.page * self.limit


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def pagination_from_query(query: Mapping[str, Any] | None) -> Pagination:
    """Build a Pagination from ``limit`` and ``page`` query values.

    Values may be plain strings or lists of strings, as in parsed query strings.
    """
    query = query or {}
    values: dict[str, int] = {}
    for name in ("limit", "page"):
        raw = _first(query.get(name))
        if raw is None or raw == "":
            continue
        try:
            number = int(raw)
        except (TypeError, ValueError):
            raise ServiceError(f"Invalid {name}: {raw!r}") from None
        if number < 0 or (name == "limit" and number == 0):
            raise ServiceError(f"Invalid {name}: {raw!r}")
        values[name] = number
    return Pagination(**values)


@dataclass
class User:
    id: int
    username: str
    email: str = ""
    profile_pic_url: str = ""
    created_at: float = 0.0


@dataclass
class CallDetail:
    """A call log entry; times are milliseconds since the epoch."""

    caller_id: int
    user_ids: list[int] = field(default_factory=list)
    id: int | None = None
    call_id: int = 0
    created_at: float = 0.0
    call_duration: float = 0.0
    filehash: str = ""
    aws_url: str = ""
    start_time: float = 0.0
    end_time: float = 0.0
    deleted_by_user_ids: list[int] = field(default_factory=list)
    is_audio_call: bool = False
    is_missed_call: bool = False
    is_group_call: bool = False


@dataclass
class Status:
    """A posted status; media are paired file hashes and storage URLs."""

    user_id: int
    status_type: str = ""
    message: str = ""
    file_hashes: list[str] = field(default_factory=list)
    aws_urls: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: float = 0.0
    username: str = ""


@dataclass
class Report:
    reporter_id: int
    reportee_id: int = 0
    group_id: int = 0
    id: int | None = None


@dataclass
class BlockedContact:
    blocker_id: int
    blockee_id: int
    id: int | None = None
    created_at: float = 0.0


@dataclass
class Wallpaper:
    url: str
    wallpaper_type: str
    id: int | None = None
    created_at: float = 0.0


@dataclass
class WallpaperSet:
    dark: list[Wallpaper] = field(default_factory=list)
    bright: list[Wallpaper] = field(default_factory=list)
    light: list[Wallpaper] = field(default_factory=list)
    pattern: list[Wallpaper] = field(default_factory=list)


@dataclass
class Group:
    """A chat group; timestamps are milliseconds since the epoch."""

    name: str
    admin_ids: list[int] = field(default_factory=list)
    user_ids: list[int] = field(default_factory=list)
    pending_user_ids: list[int] = field(default_factory=list)
    id: int | None = None
    created_at: float = 0.0
    chat_id: int = 0
    total_users: int = 0
    status: str = "ACTIVE"
    subject_timestamp: float = 0.0
    subject_owner_id: int = 0
    profile_pic_url: str = ""


@dataclass
class GroupInvitationReply:
    group_id: int
    user_id: int
    type: str


@dataclass
class Backup:
    user_id: int
    filehash: str = ""
    file_size: int = 0
    file_name: str = ""
    backup_nature: str = ""
    id: int | None = None


@dataclass
class Review:
    concert_id: int
    user_id: int
    rating: float
    feedback: str = ""
    id: int | None = None


@dataclass
class ReviewEntry:
    """A review joined with its author's public details."""

    user_id: int
    concert_id: int
    rating: float
    feedback: str
    username: str
    profile_pic_url: str


@dataclass
class Notification:
    sender_user_id: int
    receiver_user_id: int
    sender_username: str
    receiver_username: str
    message: str
    title: str
    type: str
    profile_pic_url: str = ""


class NotificationOutbox:
    """Thread-safe queue of notifications waiting to be delivered."""

    def __init__(self) -> None:
        self._queue: deque[Notification] = deque()
        self._lock = threading.Lock()

    def push(self, notification: Notification) -> None:
        with self._lock:
            self._queue.append(notification)

    def drain(self) -> list[Notification]:
        """Return every queued notification in order and empty the queue."""
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)