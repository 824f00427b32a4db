"""Per-user chat backup records."""

from __future__ import annotations

import sqlite3

from .models import Backup, Response, ServiceError
from .store import Database


class BackupRepository:
    """Keeps the latest backup file record of each user."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def save_backup(self, backup: Backup) -> Response:
        try:
            existing = self._db.query("SELECT id FROM backups WHERE user_id = ?", (backup.user_id,))
        except sqlite3.Error:
            existing = []
        if existing:
            try:
                cursor = self._db.execute(
                    "UPDATE backups SET filehash = ?, file_size = ?, file_name = ?, backup_nature = ? "
                    "WHERE user_id = ?",
                    (backup.filehash, backup.file_size, backup.file_name, backup.backup_nature, backup.user_id),
                )
            except sqlite3.Error as exc:
                raise ServiceError("Filehash is not updated.") from exc
            if cursor.rowcount == 0:
                raise ServiceError("Filehash is not updated.")
            return Response("Filehash updated.")
        try:
            self._db.execute(
                "INSERT INTO backups (user_id, filehash, file_size, file_name, backup_nature) "
                "VALUES (?, ?, ?, ?, ?)",
                (backup.user_id, backup.filehash, backup.file_size, backup.file_name, backup.backup_nature),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Filehash is not saved.") from exc
        return Response("Filehash is saved")

    def get_backup(self, user_id: int) -> Response:
        try:
            rows = self._db.query(
                "SELECT id, user_id, filehash, file_size, file_name, backup_nature "
                "FROM backups WHERE user_id = ?",
                (user_id,),
            )
        except sqlite3.Error:
            rows = []
        if not rows:
            return Response("Filehash is not found.")
        row = rows[0]
        backup = Backup(
            user_id=row["user_id"],
            filehash=row["filehash"],
            file_size=row["file_size"],
            file_name=row["file_name"],
            backup_nature=row["backup_nature"],
            id=row["id"],
        )
        return Response("Filehash is found", data=backup)