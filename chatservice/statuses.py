"""Status posts and chat reports, with automatic temporary blocks."""

from __future__ import annotations

import sqlite3
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import Report, Response, ServiceError, Status
from .store import Database

_DAY_MS = 86_400_000

_STATUS_COLUMNS = "id, created_at, user_id, username, status_type, message, file_hash, aws_url"


def _now_ms(now: datetime | None = None) -> float:
    if now is None:
        return time.time() * 1000
    return now.timestamp() * 1000


def _row_to_status(row: sqlite3.Row) -> Status:
    return Status(
        user_id=row["user_id"],
        status_type=row["status_type"],
        message=row["message"],
        file_hashes=[row["file_hash"]] if row["file_hash"] else [],
        aws_urls=[row["aws_url"]] if row["aws_url"] else [],
        id=row["id"],
        created_at=float(row["created_at"]),
        username=row["username"],
    )


class StatusRepository:
    """Posts, lists, deletes and searches user statuses."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def post_status(self, status: Status) -> Response:
        """Store a text status, or one row per attached media file."""
        users = self._db.query("SELECT username FROM users WHERE id = ?", (status.user_id,))
        if not users:
            raise ServiceError("User id is not found.", 404)
        username = users[0]["username"]

        if status.file_hashes and len(status.file_hashes) != len(status.aws_urls):
            raise ServiceError("Status is not uploaded.", 400)
        if status.file_hashes:
            entries = [
                ("", file_hash, aws_url)
                for file_hash, aws_url in zip(status.file_hashes, status.aws_urls)
            ]
        else:
            entries = [(status.message, "", "")]

        try:
            with self._db.transaction():
                for message, file_hash, aws_url in entries:
                    if status.created_at:
                        self._db.execute(
                            "INSERT INTO status (created_at, user_id, username, status_type, "
                            "message, file_hash, aws_url) VALUES (?, ?, ?, ?, ?, ?, ?)",
                            (status.created_at, status.user_id, username, status.status_type,
                             message, file_hash, aws_url),
                        )
                    else:
                        self._db.execute(
                            "INSERT INTO status (user_id, username, status_type, message, "
                            "file_hash, aws_url) VALUES (?, ?, ?, ?, ?, ?)",
                            (status.user_id, username, status.status_type, message,
                             file_hash, aws_url),
                        )
        except sqlite3.Error as exc:
            raise ServiceError("Status is not uploaded.", 400) from exc
        return Response("Status is uploaded.")

    def fetch_statuses(self, user_id: int) -> Response:
        """Return the user's own statuses and those of accepted friends by user id."""
        try:
            friend_rows = self._db.query(
                "SELECT friend_id1 AS id FROM friends WHERE friend_id2 = ? "
                "AND friendship_status = 'ACCEPTED' "
                "UNION SELECT friend_id2 FROM friends WHERE friend_id1 = ? "
                "AND friendship_status = 'ACCEPTED'",
                (user_id, user_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Friends not found for this user id.", 404) from exc

        own = [
            _row_to_status(row)
            for row in self._db.query(
                f"SELECT {_STATUS_COLUMNS} FROM status WHERE user_id = ? ORDER BY id", (user_id,)
            )
        ]
        if not own:
            raise ServiceError("Status not found for this user id.", 404)

        friend_ids = sorted({row["id"] for row in friend_rows})
        by_friend: dict[int, list[Status]] = defaultdict(list)
        if friend_ids:
            marks = ", ".join("?" * len(friend_ids))
            for row in self._db.query(
                f"SELECT {_STATUS_COLUMNS} FROM status WHERE user_id IN ({marks}) ORDER BY id",
                friend_ids,
            ):
                by_friend[row["user_id"]].append(_row_to_status(row))
        return Response(
            "Status found.",
            data={"statuses": own, "friend_statuses": dict(by_friend)},
        )

    def delete_statuses(self, user_id: int, status_ids: list[int]) -> Response:
        if not self._db.query("SELECT id FROM status WHERE user_id = ? LIMIT 1", (user_id,)):
            raise ServiceError("Status not found for this user id.", 404)
        ids = sorted(set(status_ids))
        if not ids:
            raise ServiceError("Status not found.", 404)
        marks = ", ".join("?" * len(ids))
        cursor = self._db.execute(f"DELETE FROM status WHERE id IN ({marks})", ids)
        if cursor.rowcount == 0:
            raise ServiceError("Status not found.", 404)
        return Response("Status deleted successfully.")

    def search_statuses_by_username(self, username: str) -> Response:
        """Statuses of users whose name starts with ``username``, case-insensitively."""
        rows = self._db.query(
            f"SELECT {_STATUS_COLUMNS} FROM status WHERE username LIKE ? ORDER BY id",
            (username + "%",),
        )
        if not rows:
            raise ServiceError("Status not found for this username.", 404)
        grouped: dict[str, list[Status]] = defaultdict(list)
        for row in rows:
            grouped[row["username"]].append(_row_to_status(row))
        return Response("Status found.", data=dict(grouped))


@dataclass(frozen=True)
class ReportThresholds:
    """Report counts at which a user or group is blocked for 1, 7, 30 days, then for good."""

    first: int
    second: int
    third: int
    fourth: int


class ReportRepository:
    """Records chat reports and blocks reported users and groups."""

    _USER_STATES = ("TEMPORARY_BLOCKED_1", "TEMPORARY_BLOCKED_7", "TEMPORARY_BLOCKED_30", "INACTIVE")
    _GROUP_STATES = ("TEMPORARY_BLOCKED_1", "TEMPORARY_BLOCKED_7", "TEMPORARY_BLOCKED_30", None)

    def __init__(self, db: Database, thresholds: ReportThresholds) -> None:
        self._db = db
        self._thresholds = thresholds

    def _state_for(self, count: int, states: tuple[str | None, ...]) -> tuple[bool, str | None]:
        limits = (
            self._thresholds.first,
            self._thresholds.second,
            self._thresholds.third,
            self._thresholds.fourth,
        )
        for limit, state in zip(limits, states):
            if count == limit:
                return True, state
        return False, None

    def _first_or_create(self, report: Report, where: str, params: tuple[int, ...]) -> Report:
        rows = self._db.query(
            f"SELECT id, reporter_id, reportee_id, group_id FROM reports WHERE {where} "
            "ORDER BY id LIMIT 1",
            params,
        )
        if rows:
            row = rows[0]
            return Report(
                reporter_id=row["reporter_id"],
                reportee_id=row["reportee_id"],
                group_id=row["group_id"],
                id=row["id"],
            )
        try:
            cursor = self._db.execute(
                "INSERT INTO reports (reporter_id, reportee_id, group_id) VALUES (?, ?, ?)",
                (report.reporter_id, report.reportee_id, report.group_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("You have already reported this chat.", 400) from exc
        return Report(
            reporter_id=report.reporter_id,
            reportee_id=report.reportee_id,
            group_id=report.group_id,
            id=cursor.lastrowid,
        )

    def report_chat(self, report: Report) -> Response:
        """Record a report once per reporter and target; block the target at thresholds."""
        if report.group_id == 0:
            return self._report_user(report)
        return self._report_group(report)

    def _report_user(self, report: Report) -> Response:
        if report.reportee_id == 0 or report.reporter_id == 0:
            raise ServiceError("Please enter reporter id and reportee id.", 400)
        ids = sorted({report.reporter_id, report.reportee_id})
        marks = ", ".join("?" * len(ids))
        if len(self._db.query(f"SELECT id FROM users WHERE id IN ({marks})", ids)) < 2:
            raise ServiceError("Please check your reporter or reportee ids.", 400)

        saved = self._first_or_create(
            report, "reporter_id = ? AND reportee_id = ?", (report.reporter_id, report.reportee_id)
        )
        (row,) = self._db.query(
            "SELECT COUNT(*) AS n FROM reports WHERE reportee_id = ?", (report.reportee_id,)
        )
        matched, state = self._state_for(row["n"], self._USER_STATES)
        if matched:
            cursor = self._db.execute(
                "UPDATE users SET status = ?, status_updated_at = ? WHERE id = ?",
                (state, _now_ms(), report.reportee_id),
            )
            if cursor.rowcount == 0:
                raise ServiceError("User status is not updated.", 400)
        return Response("Report sent.", data=saved)

    def _report_group(self, report: Report) -> Response:
        if report.reporter_id == 0:
            raise ServiceError("Please enter reporter id and group id.", 400)
        if not self._db.query("SELECT id FROM users WHERE id = ?", (report.reporter_id,)):
            raise ServiceError("Reporter id is not found.", 400)
        if not self._db.query('SELECT id FROM "groups" WHERE id = ?', (report.group_id,)):
            raise ServiceError("Group id is not found.", 400)

        saved = self._first_or_create(
            report, "reporter_id = ? AND group_id = ?", (report.reporter_id, report.group_id)
        )
        (row,) = self._db.query(
            "SELECT COUNT(*) AS n FROM reports WHERE group_id = ?", (report.group_id,)
        )
        matched, state = self._state_for(row["n"], self._GROUP_STATES)
        if matched:
            if state is None:
                cursor = self._db.execute('DELETE FROM "groups" WHERE id = ?', (report.group_id,))
                if cursor.rowcount == 0:
                    raise ServiceError("Group is not deleted.", 400)
            else:
                cursor = self._db.execute(
                    'UPDATE "groups" SET status = ?, blocked_time = ? WHERE id = ?',
                    (state, _now_ms(), report.group_id),
                )
                if cursor.rowcount == 0:
                    raise ServiceError("User status is not updated.", 400)
        return Response("Report sent.", data=saved)

    def lift_expired_blocks(self, now: datetime | None = None) -> Response:
        """Reactivate users and groups whose temporary block has run out."""
        current = _now_ms(now)
        limits = (current - _DAY_MS, current - 7 * _DAY_MS, current - 30 * _DAY_MS)
        condition = (
            "(status = 'TEMPORARY_BLOCKED_1' AND {col} <= ?) "
            "OR (status = 'TEMPORARY_BLOCKED_7' AND {col} <= ?) "
            "OR (status = 'TEMPORARY_BLOCKED_30' AND {col} <= ?)"
        )
        with self._db.transaction():
            groups = self._db.execute(
                "UPDATE \"groups\" SET status = 'ACTIVE' WHERE "
                + condition.format(col="blocked_time"),
                limits,
            ).rowcount
            users = self._db.execute(
                "UPDATE users SET status = 'ACTIVE' WHERE "
                + condition.format(col="status_updated_at"),
                limits,
            ).rowcount
        return Response("Group status updated.", data={"groups": groups, "users": users})


__all__ = ["StatusRepository", "ReportThresholds", "ReportRepository", "timedelta"]