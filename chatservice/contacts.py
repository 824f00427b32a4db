"""Blocked contacts, wallpapers and group chat settings."""

from __future__ import annotations

import sqlite3

from .models import BlockedContact, Response, ServiceError, Wallpaper, WallpaperSet
from .store import Database

_WALLPAPER_KINDS = ("dark", "bright", "light", "pattern")


def _row_to_block(row: sqlite3.Row) -> BlockedContact:
    return BlockedContact(
        blocker_id=row["blocker_id"],
        blockee_id=row["blockee_id"],
        id=row["id"],
        created_at=float(row["created_at"]),
    )


class ContactRepository:
    """Manages who blocked whom, the wallpaper catalogue and group chat settings."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def block_user(self, blocker_id: int, blockee_id: int) -> Response:
        ids = sorted({blocker_id, blockee_id})
        marks = ", ".join("?" * len(ids))
        if len(self._db.query(f"SELECT id FROM users WHERE id IN ({marks})", ids)) < 2:
            raise ServiceError("Please enter valid user id.", 400)
        existing = self._db.query(
            "SELECT id, created_at, blocker_id, blockee_id FROM blocked_contacts "
            "WHERE blockee_id = ? AND blocker_id = ? ORDER BY id LIMIT 1",
            (blockee_id, blocker_id),
        )
        if existing:
            return Response("You have aleady blocked this person.", data=_row_to_block(existing[0]))
        try:
            cursor = self._db.execute(
                "INSERT INTO blocked_contacts (blocker_id, blockee_id) VALUES (?, ?)",
                (blocker_id, blockee_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("User is not blocked.", 400) from exc
        (row,) = self._db.query(
            "SELECT id, created_at, blocker_id, blockee_id FROM blocked_contacts WHERE id = ?",
            (cursor.lastrowid,),
        )
        return Response("User is blocked successfully.", data=_row_to_block(row))

    def fetch_block_relations(self, user_id: int) -> Response:
        """Every block the user takes part in, keyed ``"<blocker>-<blockee>"``, newest first."""
        rows = self._db.query(
            "SELECT id, created_at, blocker_id, blockee_id FROM blocked_contacts "
            "WHERE blockee_id = ? OR blocker_id = ? ORDER BY created_at DESC, id DESC",
            (user_id, user_id),
        )
        if not rows:
            raise ServiceError("User is not found.", 404)
        relations: dict[str, BlockedContact] = {}
        for row in rows:
            block = _row_to_block(row)
            relations.setdefault(f"{block.blocker_id}-{block.blockee_id}", block)
        return Response("Blocked contacts found.", data=relations)

    def fetch_blocked_contacts(self, user_id: int) -> Response:
        """Contacts the user has blocked."""
        rows = self._db.query(
            "SELECT id, created_at, blocker_id, blockee_id FROM blocked_contacts "
            "WHERE blocker_id = ? ORDER BY id",
            (user_id,),
        )
        if not rows:
            raise ServiceError("Blocked contacts not found.", 404)
        return Response(
            "Blocked contacts found successfully.",
            data=[_row_to_block(row) for row in rows],
        )

    def unblock_user(self, blocker_id: int, blockee_id: int) -> Response:
        try:
            cursor = self._db.execute(
                "DELETE FROM blocked_contacts WHERE blockee_id = ? AND blocker_id = ?",
                (blockee_id, blocker_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("User is not found in blocked list.", 400) from exc
        if cursor.rowcount == 0:
            raise ServiceError("User is not found in blocked list.", 400)
        return Response("User is unblocked successfully.")

    def fetch_wallpapers(self) -> Response:
        """The wallpaper catalogue split by kind; other kinds are ignored."""
        try:
            rows = self._db.query(
                "SELECT id, created_at, wallpaper_url, wallpaper_type FROM wallpapers ORDER BY id"
            )
        except sqlite3.Error as exc:
            raise ServiceError("Wallpaper not found.", 400) from exc
        catalogue = WallpaperSet()
        for row in rows:
            kind = row["wallpaper_type"]
            if kind not in _WALLPAPER_KINDS:
                continue
            getattr(catalogue, kind).append(
                Wallpaper(
                    url=row["wallpaper_url"],
                    wallpaper_type=kind,
                    id=row["id"],
                    created_at=float(row["created_at"]),
                )
            )
        if not any(getattr(catalogue, kind) for kind in _WALLPAPER_KINDS):
            raise ServiceError("Wallpaper not found.", 400)
        return Response("Wallpapers found.", data=catalogue)

    def save_group_chat_setting(self, user_id: int, group_chat_type: str) -> Response:
        if not self._db.query("SELECT id FROM users WHERE id = ?", (user_id,)):
            raise ServiceError("User is not found.", 400)
        try:
            with self._db.transaction():
                cursor = self._db.execute(
                    "UPDATE chat_settings SET group_chat_type = ? WHERE user_id = ?",
                    (group_chat_type, user_id),
                )
                if cursor.rowcount == 0:
                    self._db.execute(
                        "INSERT INTO chat_settings (user_id, group_chat_type) VALUES (?, ?)",
                        (user_id, group_chat_type),
                    )
        except sqlite3.Error as exc:
            raise ServiceError("Group chat setting is not saved.", 400) from exc
        return Response("Group chat setting is saved successfully.")

    def fetch_group_chat_setting(self, user_id: int) -> Response:
        rows = self._db.query(
            "SELECT group_chat_type FROM chat_settings WHERE user_id = ?", (user_id,)
        )
        if not rows:
            raise ServiceError("Group chat setting is not found.", 400)
        return Response("Group chat setting is found.", data=rows[0]["group_chat_type"])