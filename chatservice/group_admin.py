"""Group administration: admin roles, group details and invitation replies."""

from __future__ import annotations

import json
import sqlite3
from collections import defaultdict
from dataclasses import replace

from .groups import _GROUP_COLUMNS, _row_to_group
from .models import Group, GroupInvitationReply, Response, ServiceError, User
from .store import Database


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


class GroupAdminRepository:
    """Manages group admins, lists groups with their members and handles invitations."""

    def __init__(self, db: Database, aws_url: str = "") -> None:
        self._db = db
        self._aws_url = aws_url

    def _group(self, group_id: int) -> Group | None:
        rows = self._db.query(f'SELECT {_GROUP_COLUMNS} FROM "groups" WHERE id = ?', (group_id,))
        return _row_to_group(rows[0]) if rows else None

    def make_or_remove_admin(
        self, user_id: int, group_id: int, new_admin_id: int, method_type: str
    ) -> Response:
        """Grant (``Create-admin``) or revoke (``Remove-admin``) a member's admin role."""
        with self._db.transaction():
            group = self._group(group_id)
            if group is None:
                raise ServiceError("Group is not found.", 400)
            if new_admin_id == user_id:
                raise ServiceError("You can not make or remove yourself as admin.", 400)
            if user_id not in group.admin_ids:
                raise ServiceError("You are not an admin.", 400)
            if new_admin_id not in group.user_ids:
                raise ServiceError("User is not present in group.", 400)

            if method_type == "Create-admin":
                if new_admin_id in group.admin_ids:
                    raise ServiceError("This user is already an admin.", 400)
                admins = group.admin_ids + [new_admin_id]
                failure, success = "Admin not created.", "Admin created successfully."
            elif method_type == "Remove-admin":
                admins = [aid for aid in group.admin_ids if aid != new_admin_id]
                failure, success = "Admin not removed.", "Admin removed successfully."
            else:
                raise ServiceError("Please provide method_type", 400)

            try:
                self._db.execute(
                    'UPDATE "groups" SET admin_ids = ? WHERE id = ?',
                    (json.dumps(admins), group_id),
                )
            except sqlite3.Error as exc:
                raise ServiceError(failure, 400) from exc
        return Response(success)

    def get_group_details(self, group_id: int) -> Response:
        """The group and its members keyed by user id."""
        group = self._group(group_id)
        if group is None:
            raise ServiceError("Group details not found.", 400)
        ids = sorted(set(group.user_ids))
        rows = []
        if ids:
            rows = self._db.query(
                "SELECT id, created_at, username, profile_pic_url FROM users "
                f"WHERE id IN ({_placeholders(len(ids))}) ORDER BY id",
                ids,
            )
        if not rows:
            raise ServiceError("User details not found.", 400)
        members = {
            row["id"]: User(
                id=row["id"],
                username=row["username"],
                profile_pic_url=row["profile_pic_url"],
                created_at=float(row["created_at"]),
            )
            for row in rows
        }
        return Response(
            "Group details found.",
            data={"group": replace(group, pending_user_ids=[]), "user_details": members},
        )

    def reply_to_invitation(self, reply: GroupInvitationReply) -> Response:
        """Accept or decline a pending invitation to a group."""
        with self._db.transaction():
            group = self._group(reply.group_id)
            if group is None:
                raise ServiceError("User is not found.", 400)
            pending = [uid for uid in group.pending_user_ids if uid != reply.user_id]
            try:
                if reply.type == "ACCEPT":
                    users = list(group.user_ids)
                    total = group.total_users
                    if reply.user_id not in users:
                        users.append(reply.user_id)
                        total += 1
                    self._db.execute(
                        'UPDATE "groups" SET pending_user_ids = ?, user_ids = ?, total_users = ? '
                        "WHERE id = ?",
                        (json.dumps(pending), json.dumps(users), total, reply.group_id),
                    )
                    message = "You have added to the group successfully."
                elif reply.type == "DECLINE":
                    self._db.execute(
                        'UPDATE "groups" SET pending_user_ids = ? WHERE id = ?',
                        (json.dumps(pending), reply.group_id),
                    )
                    message = "You have declined the invitation."
                else:
                    raise ServiceError(
                        "Please provide method_type either ACCEPT or DECLINE.", 400
                    )
            except sqlite3.Error as exc:
                raise ServiceError("User is not updated.", 400) from exc
        return Response(message)

    def get_user_groups(self, user_id: int) -> Response:
        """Groups the user belongs to, newest first, with the other members' details.

        Each member entry holds the ``user`` and whether they are an accepted friend.
        """
        try:
            rows = self._db.query(
                f'SELECT {_GROUP_COLUMNS} FROM "groups" ORDER BY created_at DESC, id DESC'
            )
        except sqlite3.Error as exc:
            raise ServiceError("Group details is not found.", 400) from exc
        groups = [
            replace(group, pending_user_ids=[])
            for group in map(_row_to_group, rows)
            if user_id in group.user_ids
        ]
        member_ids = sorted({uid for group in groups for uid in group.user_ids})

        users: dict[int, User] = {}
        friend_states: dict[int, set[str]] = defaultdict(set)
        if member_ids:
            try:
                member_rows = self._db.query(
                    "SELECT u.id, u.created_at, u.username, u.profile_pic_url, u.email, "
                    "f.friendship_status FROM users u LEFT JOIN friends f ON "
                    "(u.id = f.friend_id1 AND f.friend_id2 = ?) OR "
                    "(f.friend_id1 = ? AND u.id = f.friend_id2) "
                    f"WHERE u.id IN ({_placeholders(len(member_ids))}) "
                    "ORDER BY u.created_at DESC, u.id DESC",
                    (user_id, user_id, *member_ids),
                )
            except sqlite3.Error as exc:
                raise ServiceError("User details is not found.", 400) from exc
            for row in member_rows:
                users.setdefault(
                    row["id"],
                    User(
                        id=row["id"],
                        username=row["username"],
                        email=row["email"],
                        profile_pic_url=row["profile_pic_url"],
                        created_at=float(row["created_at"]),
                    ),
                )
                if row["friendship_status"]:
                    friend_states[row["id"]].add(row["friendship_status"])

        if not groups and not users:
            raise ServiceError("User details is not found.", 400)

        details = {
            uid: {"user": user, "is_friend": "ACCEPTED" in friend_states[uid]}
            for uid, user in users.items()
            if uid != user_id
        }
        return Response("Group details found.", data={"groups": groups, "user_details": details})

    def profile_photo_url(self, filename: str) -> Response:
        """The public URL under which an uploaded group photo is served."""
        return Response("Profile Photo uploaded successfully.", data=self._aws_url + filename)