# chatservice

Repositories for the server side of a chat application: call logs, statuses,
abuse reports with automatic temporary blocks, blocked contacts, wallpapers,
group chat settings, groups and their admins, concert reviews, and per-user
backup file records.

All data lives in one SQLite database opened through
`chatservice.store.Database`. Every successful operation returns a
`chatservice.models.Response` with a `message`, a `code` (200) and the `data`
it produced. A refused request raises `chatservice.models.ServiceError`, which
carries the `message` and an HTTP-style `code` such as 400 or 404.

## Installing

```
pip install .
```

Only the standard library is needed at run time. To run the tests:

```
pip install .[test]
pytest
```

## A short tour

```python
from chatservice.store import Database
from chatservice.models import Group, GroupInvitationReply, NotificationOutbox, ServiceError
from chatservice.contacts import ContactRepository
from chatservice.groups import GroupRepository
from chatservice.group_admin import GroupAdminRepository

with Database() as db:                      # ":memory:" by default
    alice = db.add_user("alice", "alice@example.com")
    bob = db.add_user("bob", "bob@example.com")
    carol = db.add_user("carol", "carol@example.com")

    # A user with a group chat setting is invited instead of added directly.
    ContactRepository(db).save_group_chat_setting(carol.id, "PRIVATE")

    outbox = NotificationOutbox()
    groups = GroupRepository(db, outbox)
    group = groups.create_group(
        Group(name="band", admin_ids=[alice.id], user_ids=[alice.id, bob.id, carol.id])
    ).data
    print(group.user_ids, group.pending_user_ids)   # members, then invitees

    for notification in outbox.drain():
        print(notification.receiver_username, notification.message)

    admin = GroupAdminRepository(db)
    admin.reply_to_invitation(GroupInvitationReply(group.id, carol.id, "ACCEPT"))
    print(admin.get_group_details(group.id).data["user_details"])

    try:
        groups.leave_group(group.id, 99)
    except ServiceError as err:
        print(err.code, err.message)                # 404 You are not in the group.
```

## Storage

`Database(path=":memory:")` creates every table it needs on opening. It can be
used as a context manager, which closes it on exit. `query(sql, params)` and
`execute(sql, params)` run statements in autocommit mode; `transaction()`
groups statements atomically, and nested blocks join the outer one. Timestamps
are stored as milliseconds since the epoch and id lists as JSON text.

`add_user`, `add_friendship` and `add_wallpaper` put in the records that the
repositories read but do not create themselves.

## Repositories

| Module | Class | What it handles |
| --- | --- | --- |
| `chatservice.calls` | `CallRepository` | `save_call_log`, `fetch_all_call_logs`, `fetch_missed_call_logs`, `delete_call_log` |
| `chatservice.statuses` | `StatusRepository` | `post_status`, `fetch_statuses`, `delete_statuses`, `search_statuses_by_username` |
| `chatservice.statuses` | `ReportRepository` | `report_chat`, `lift_expired_blocks` |
| `chatservice.contacts` | `ContactRepository` | `block_user`, `unblock_user`, `fetch_block_relations`, `fetch_blocked_contacts`, `fetch_wallpapers`, `save_group_chat_setting`, `fetch_group_chat_setting` |
| `chatservice.groups` | `GroupRepository` | `create_group`, `add_users`, `remove_user`, `leave_group`, `edit_group_info`, `delete_group` |
| `chatservice.group_admin` | `GroupAdminRepository` | `make_or_remove_admin`, `get_group_details`, `reply_to_invitation`, `get_user_groups`, `profile_photo_url` |
| `chatservice.reviews` | `ReviewRepository` | `save_review`, `get_reviews`, `get_overall_rating` |
| `chatservice.backups` | `BackupRepository` | `save_backup`, `get_backup` |

Some details worth knowing:

- Calls between the same list of participants share one `call_id`. A listing
  leaves out calls the user has deleted and two-person calls with someone the
  user blocked, made after the block. With `source="Web"` the user details are
  a list; with any other source they are a dict keyed by user id.
- A group holds at most 200 users. When its only admin leaves, the next member
  becomes admin and is returned as `new_admin_id`.
- `make_or_remove_admin` takes `method_type` `"Create-admin"` or
  `"Remove-admin"`; `reply_to_invitation` takes `"ACCEPT"` or `"DECLINE"`.
- `ReportThresholds(first, second, third, fourth)` gives the report counts at
  which a user is blocked for 1, 7 and 30 days and then made inactive; a group
  is blocked for 1, 7 and 30 days and then deleted. A reporter counts once per
  target.

Listing calls and reviews take a query mapping with `page` and `limit` (plain
strings or lists of strings, as from a parsed query string);
`pagination_from_query` defaults to page 0 with 10 items and raises
`ServiceError` for values that are not valid.

## What this package does not do

- It serves no HTTP API: the repositories are called directly from Python.
- It delivers no notifications. Group invitations are queued on a
  `NotificationOutbox`, and the caller drains and sends them.
- It stores no files. `profile_photo_url` only joins the configured base URL
  and a file name; backups record a file's hash, name and size.
- It runs no scheduler. Expired temporary blocks are lifted only when
  `ReportRepository.lift_expired_blocks` is called.
- It has no wallet, payment or ticket booking features.