"""Chat groups: creation, membership and basic editing."""

from __future__ import annotations

import json
import sqlite3
import time

from .models import Group, Notification, NotificationOutbox, Response, ServiceError, User
from .store import Database

MAX_GROUP_USERS = 200

_GROUP_COLUMNS = (
    "id, created_at, group_name, admin_ids, chat_id, total_users, status, "
    "subject_timestamp, subject_owner_id, profile_pic_url, user_ids, pending_user_ids"
)


def _row_to_group(row: sqlite3.Row) -> Group:
    return Group(
        name=row["group_name"],
        admin_ids=list(json.loads(row["admin_ids"])),
        user_ids=list(json.loads(row["user_ids"])),
        pending_user_ids=list(json.loads(row["pending_user_ids"])),
        id=row["id"],
        created_at=float(row["created_at"]),
        chat_id=row["chat_id"],
        total_users=row["total_users"],
        status=row["status"],
        subject_timestamp=float(row["subject_timestamp"]),
        subject_owner_id=row["subject_owner_id"],
        profile_pic_url=row["profile_pic_url"],
    )


class GroupRepository:
    """Creates groups, manages their members and sends invitations."""

    def __init__(self, db: Database, outbox: NotificationOutbox) -> None:
        self._db = db
        self._outbox = outbox

    def _group(self, group_id: int) -> Group | None:
        rows = self._db.query(f'SELECT {_GROUP_COLUMNS} FROM "groups" WHERE id = ?', (group_id,))
        return _row_to_group(rows[0]) if rows else None

    def _require_group(self, group_id: int, message: str) -> Group:
        group = self._group(group_id)
        if group is None:
            raise ServiceError(message, 404)
        return group

    def _user(self, user_id: int) -> User | None:
        rows = self._db.query(
            "SELECT id, created_at, username, email, profile_pic_url FROM users WHERE id = ?",
            (user_id,),
        )
        if not rows:
            return None
        row = rows[0]
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            profile_pic_url=row["profile_pic_url"],
            created_at=float(row["created_at"]),
        )

    def _has_private_setting(self, user_id: int) -> bool:
        return bool(self._db.query("SELECT id FROM chat_settings WHERE user_id = ?", (user_id,)))

    def _split_invitees(
        self, user_ids: list[int], inviter: User | None, group_name: str, profile_pic_url: str
    ) -> tuple[list[int], list[int], list[Notification]]:
        """Separate users who join directly from those who must accept an invitation."""
        normal: list[int] = []
        pending: list[int] = []
        invitations: list[Notification] = []
        inviter_name = inviter.username if inviter else ""
        inviter_id = inviter.id if inviter else 0
        for user_id in user_ids:
            user = self._user(user_id)
            if user is None:
                raise ServiceError(f"User id {user_id} is not found.", 404)
            if self._has_private_setting(user_id):
                invitations.append(
                    Notification(
                        sender_user_id=inviter_id,
                        receiver_user_id=user.id,
                        sender_username=inviter_name,
                        receiver_username=user.username,
                        message=(
                            f"You are invited by {inviter_name} please accept to join "
                            f"the group {group_name}."
                        ),
                        title="Group Invitation",
                        type="GROUP_CHAT_INVITATION",
                        profile_pic_url=profile_pic_url,
                    )
                )
                pending.append(user_id)
            else:
                normal.append(user_id)
        return normal, pending, invitations

    def _update_members(
        self, group_id: int, user_ids: list[int], admin_ids: list[int], total_users: int
    ) -> None:
        self._db.execute(
            'UPDATE "groups" SET user_ids = ?, admin_ids = ?, total_users = ? WHERE id = ?',
            (json.dumps(user_ids), json.dumps(admin_ids), total_users, group_id),
        )

    def create_group(self, group: Group) -> Response:
        """Create a group; users with a group chat setting are invited instead of added."""
        creator = next(
            (user for user in map(self._user, sorted(set(group.admin_ids))) if user is not None),
            None,
        )
        if creator is None:
            raise ServiceError("Please use valid user id in place of admin id.", 400)
        normal, pending, invitations = self._split_invitees(
            group.user_ids, creator, group.name, group.profile_pic_url
        )
        for invitation in invitations:
            invitation.sender_user_id = group.admin_ids[0]

        chat_id = time.time_ns() // 1_000_000
        try:
            cursor = self._db.execute(
                'INSERT INTO "groups" (group_name, admin_ids, chat_id, total_users, status, '
                "subject_timestamp, subject_owner_id, profile_pic_url, user_ids, pending_user_ids) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    group.name,
                    json.dumps(list(group.admin_ids)),
                    chat_id,
                    len(normal),
                    "ACTIVE",
                    float(int(group.subject_timestamp)),
                    group.subject_owner_id,
                    group.profile_pic_url,
                    json.dumps(normal),
                    json.dumps(pending),
                ),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Group is not created", 400) from exc
        for invitation in invitations:
            self._outbox.push(invitation)
        return Response("Group is created successfully", data=self._group(cursor.lastrowid))

    def add_users(self, group_id: int, admin_ids: list[int], user_ids: list[int]) -> Response:
        """Add users to a group on behalf of one of its admins."""
        group = self._require_group(group_id, "Group is not found.")
        if len(user_ids) + len(group.user_ids) > MAX_GROUP_USERS:
            raise ServiceError(f"You can only add {MAX_GROUP_USERS} peoples.", 400)
        acting = [admin_id for admin_id in admin_ids if admin_id in group.admin_ids]
        if not acting:
            raise ServiceError("You are not an admin.", 400)
        inviter = self._user(acting[0])
        normal, pending, invitations = self._split_invitees(
            user_ids, inviter, group.name, group.profile_pic_url
        )
        if any(user_id in group.user_ids for user_id in user_ids):
            raise ServiceError("These users are already in the group.", 400)
        try:
            self._db.execute(
                'UPDATE "groups" SET user_ids = ?, pending_user_ids = ?, total_users = ? '
                "WHERE id = ?",
                (
                    json.dumps(group.user_ids + normal),
                    json.dumps(group.pending_user_ids + pending),
                    group.total_users + len(normal),
                    group_id,
                ),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Users not added to group.", 400) from exc
        for invitation in invitations:
            self._outbox.push(invitation)
        return Response("Users added to group successfully", data=self._group(group_id))

    def remove_user(self, group_id: int, user_id: int, admin_id: int) -> Response:
        group = self._require_group(group_id, "Group is not found")
        if admin_id not in group.admin_ids:
            raise ServiceError("You are not an admin.", 400)
        if user_id not in group.user_ids:
            raise ServiceError("This user id is not in the group.", 404)
        try:
            self._update_members(
                group_id,
                [uid for uid in group.user_ids if uid != user_id],
                [aid for aid in group.admin_ids if aid != user_id],
                group.total_users - 1,
            )
        except sqlite3.Error as exc:
            raise ServiceError("User is not removed from group.", 400) from exc
        return Response("User is removed from group successfully.")

    def leave_group(self, group_id: int, user_id: int) -> Response:
        """Leave a group; a sole admin hands the role to another member."""
        group = self._require_group(group_id, "Group is not found")
        if user_id not in group.user_ids:
            raise ServiceError("You are not in the group.", 404)
        remaining_users = [uid for uid in group.user_ids if uid != user_id]
        remaining_admins = [aid for aid in group.admin_ids if aid != user_id]
        left = "You have left the group successfully."
        failed = "You haven't leaved the group successfully."

        new_admin_id: int | None = None
        sole_admin_leaving = (
            len(group.admin_ids) == 1
            and group.total_users > 1
            and group.admin_ids[0] == user_id
        )
        if sole_admin_leaving:
            if not remaining_users:
                raise ServiceError(failed, 400)
            new_admin_id = remaining_users[0]
            remaining_admins.append(new_admin_id)
        try:
            self._update_members(group_id, remaining_users, remaining_admins, group.total_users - 1)
        except sqlite3.Error as exc:
            raise ServiceError(failed, 400) from exc
        if new_admin_id is not None:
            return Response(left, data={"new_admin_id": new_admin_id})
        return Response(left)

    def edit_group_info(self, group_id: int, name: str, profile_pic_url: str) -> Response:
        self._require_group(group_id, "Group is not found.")
        try:
            self._db.execute(
                'UPDATE "groups" SET group_name = ?, profile_pic_url = ? WHERE id = ?',
                (name, profile_pic_url, group_id),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Group is not found", 404) from exc
        return Response("Group info is updated successfully.")

    def delete_group(self, group_id: int) -> Response:
        try:
            cursor = self._db.execute('DELETE FROM "groups" WHERE id = ?', (group_id,))
        except sqlite3.Error as exc:
            raise ServiceError("Group is not found", 404) from exc
        if cursor.rowcount == 0:
            raise ServiceError("Group is not found", 404)
        return Response("Group is deleted successfully.")