"""Call logs: saving, listing and per-user deletion."""

from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Iterator, Mapping
from datetime import datetime, timedelta, timezone
from itertools import chain, islice
from typing import Any

from .models import CallDetail, Response, ServiceError, User, pagination_from_query
from .store import Database

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

_CALL_COLUMNS = (
    "id, created_at, call_id, caller_id, call_duration, filehash, aws_url, start_time, "
    "end_time, user_ids, deleted_by_user_ids, is_audio_call, is_missed_call, is_group_call"
)


def _to_ms(value: datetime | float | int | None) -> float:
    """Milliseconds since the epoch for a datetime or an already numeric value."""
    if value is None:
        return 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.astimezone()
        return float((value - _EPOCH) // _ONE_MS)
    return float(value)


def _row_to_call(row: sqlite3.Row) -> CallDetail:
    return CallDetail(
        id=row["id"],
        created_at=float(row["created_at"]),
        call_id=row["call_id"],
        caller_id=row["caller_id"],
        call_duration=float(row["call_duration"]),
        filehash=row["filehash"],
        aws_url=row["aws_url"],
        start_time=float(row["start_time"]),
        end_time=float(row["end_time"]),
        user_ids=list(json.loads(row["user_ids"])),
        deleted_by_user_ids=list(json.loads(row["deleted_by_user_ids"])),
        is_audio_call=bool(row["is_audio_call"]),
        is_missed_call=bool(row["is_missed_call"]),
        is_group_call=bool(row["is_group_call"]),
    )


class CallRepository:
    """Stores call logs and lists them for each participant."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def save_call_log(
        self,
        call: CallDetail,
        call_duration: datetime | float | int | None,
        start_time: datetime | float | int | None,
        end_time: datetime | float | int | None,
    ) -> Response:
        """Save a call; calls between the same participants share one call id."""
        if not self._db.query("SELECT id FROM users WHERE id = ?", (call.caller_id,)):
            raise ServiceError("CallerId not found please give valid user ids.", 404)

        user_ids = list(call.user_ids)
        encoded_ids = json.dumps(user_ids)
        previous = self._db.query(
            "SELECT call_id FROM call_details WHERE user_ids = ? ORDER BY id LIMIT 1",
            (encoded_ids,),
        )
        call_id = previous[0]["call_id"] if previous else time.time_ns() // 100000

        if user_ids:
            marks = ", ".join("?" * len(set(user_ids)))
            found = self._db.query(f"SELECT id FROM users WHERE id IN ({marks})", tuple(set(user_ids)))
        else:
            found = []
        if len(found) < len(user_ids):
            raise ServiceError("These users are not found please give valid user ids.", 404)

        try:
            cursor = self._db.execute(
                "INSERT INTO call_details (call_id, caller_id, call_duration, filehash, aws_url, "
                "start_time, end_time, user_ids, is_audio_call, is_missed_call, is_group_call) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    call_id,
                    call.caller_id,
                    _to_ms(call_duration),
                    call.filehash,
                    call.aws_url,
                    _to_ms(start_time),
                    _to_ms(end_time),
                    encoded_ids,
                    int(call.is_audio_call),
                    int(call.is_missed_call),
                    int(call.is_group_call),
                ),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Call logs is not saved.", 400) from exc

        (row,) = self._db.query(
            f"SELECT {_CALL_COLUMNS} FROM call_details WHERE id = ?", (cursor.lastrowid,)
        )
        return Response("Call logs saved successfully.", data=_row_to_call(row))

    def fetch_all_call_logs(
        self, user_id: int, source: str, query: Mapping[str, Any] | None = None
    ) -> Response:
        return self._fetch(user_id, source, query, missed_only=False)

    def fetch_missed_call_logs(
        self, user_id: int, source: str, query: Mapping[str, Any] | None = None
    ) -> Response:
        return self._fetch(user_id, source, query, missed_only=True)

    def delete_call_log(self, user_id: int, call_id: int) -> Response:
        """Hide a call log from one participant's history."""
        rows = self._db.query(
            "SELECT user_ids, deleted_by_user_ids FROM call_details WHERE id = ?", (call_id,)
        )
        if not rows or user_id not in json.loads(rows[0]["user_ids"]):
            raise ServiceError("This user id not present in users list.", 404)
        deleted_by = list(json.loads(rows[0]["deleted_by_user_ids"]))
        if user_id in deleted_by:
            raise ServiceError("Call logs already deleted.", 404)
        deleted_by.append(user_id)
        try:
            self._db.execute(
                "UPDATE call_details SET deleted_by_user_ids = ? WHERE id = ?",
                (json.dumps(deleted_by), call_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Call logs not deleted.", 400) from exc
        return Response("Call logs deleted.")

    def _visible_calls(self, user_id: int, missed_only: bool) -> Iterator[CallDetail]:
        where = " WHERE is_missed_call = 1" if missed_only else ""
        rows = self._db.query(
            f"SELECT {_CALL_COLUMNS} FROM call_details{where} ORDER BY created_at DESC, id DESC"
        )
        blocks = self._db.query(
            "SELECT blockee_id, created_at FROM blocked_contacts WHERE blocker_id = ?", (user_id,)
        )
        for row in rows:
            call = _row_to_call(row)
            if user_id not in call.user_ids or user_id in call.deleted_by_user_ids:
                continue
            if len(call.user_ids) == 2 and any(
                block["blockee_id"] in call.user_ids and call.created_at > block["created_at"]
                for block in blocks
            ):
                continue
            yield call

    def _users(self, ids: set[int]) -> list[User]:
        if not ids:
            return []
        ordered = sorted(ids)
        marks = ", ".join("?" * len(ordered))
        try:
            rows = self._db.query(
                f"SELECT id, created_at, username, profile_pic_url FROM users "
                f"WHERE id IN ({marks}) ORDER BY id",
                ordered,
            )
        except sqlite3.Error as exc:
            raise ServiceError("Users are not found.", 404) from exc
        return [
            User(
                id=row["id"],
                username=row["username"],
                profile_pic_url=row["profile_pic_url"],
                created_at=float(row["created_at"]),
            )
            for row in rows
        ]

    def _fetch(
        self, user_id: int, source: str, query: Mapping[str, Any] | None, missed_only: bool
    ) -> Response:
        page = pagination_from_query(query)
        calls = list(
            islice(self._visible_calls(user_id, missed_only), page.offset, page.offset + page.limit)
        )
        users = self._users(set(chain.from_iterable(call.user_ids for call in calls)))
        if not calls:
            raise ServiceError("Call logs not found.", 404)
        if source == "Web":
            user_details: Any = users
        else:
            user_details = {user.id: user for user in users}
        return Response(
            "Call logs found.",
            data={"call_details": calls, "user_details": user_details},
        )