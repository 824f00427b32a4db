from datetime import datetime, timedelta

import pytest

from chatservice.models import Report, ServiceError, Status
from chatservice.statuses import ReportRepository, ReportThresholds, StatusRepository
from chatservice.store import Database


@pytest.fixture
def db():
    with Database() as database:
        yield database


@pytest.fixture
def statuses(db):
    return StatusRepository(db)


@pytest.fixture
def reports(db):
    return ReportRepository(db, ReportThresholds(first=1, second=2, third=3, fourth=4))


def _user_status(db, user_id):
    (row,) = db.query("SELECT status FROM users WHERE id = ?", (user_id,))
    return row["status"]


def _make_group(db, name="team"):
    cursor = db.execute('INSERT INTO "groups" (group_name) VALUES (?)', (name,))
    return cursor.lastrowid


def test_post_text_status_and_fetch(db, statuses):
    alice = db.add_user("alice", "alice@example.com")
    result = statuses.post_status(Status(user_id=alice.id, status_type="TEXT", message="hello"))
    assert result.message == "Status is uploaded."
    fetched = statuses.fetch_statuses(alice.id).data
    assert [s.message for s in fetched["statuses"]] == ["hello"]
    assert fetched["statuses"][0].username == "alice"
    assert fetched["friend_statuses"] == {}


def test_post_status_unknown_user(statuses):
    with pytest.raises(ServiceError) as err:
        statuses.post_status(Status(user_id=99, message="hi"))
    assert err.value.code == 404


def test_post_media_status_creates_one_row_per_file(db, statuses):
    alice = db.add_user("alice")
    statuses.post_status(
        Status(user_id=alice.id, status_type="IMAGE", file_hashes=["h1", "h2"], aws_urls=["u1", "u2"])
    )
    own = statuses.fetch_statuses(alice.id).data["statuses"]
    assert [(s.file_hashes, s.aws_urls) for s in own] == [(["h1"], ["u1"]), (["h2"], ["u2"])]


def test_post_media_with_mismatched_urls_fails(db, statuses):
    alice = db.add_user("alice")
    with pytest.raises(ServiceError) as err:
        statuses.post_status(Status(user_id=alice.id, file_hashes=["h1", "h2"], aws_urls=["u1"]))
    assert err.value.code == 400
    assert db.query("SELECT COUNT(*) AS n FROM status")[0]["n"] == 0


def test_fetch_groups_accepted_friends_only(db, statuses):
    alice = db.add_user("alice")
    bob = db.add_user("bob")
    carol = db.add_user("carol")
    dave = db.add_user("dave")
    db.add_friendship(alice.id, bob.id)
    db.add_friendship(carol.id, alice.id)
    db.add_friendship(alice.id, dave.id, "PENDING")
    for user, text in [(alice, "a"), (bob, "b1"), (bob, "b2"), (carol, "c"), (dave, "d")]:
        statuses.post_status(Status(user_id=user.id, message=text))
    friends = statuses.fetch_statuses(alice.id).data["friend_statuses"]
    assert set(friends) == {bob.id, carol.id}
    assert [s.message for s in friends[bob.id]] == ["b1", "b2"]


def test_fetch_without_own_status(db, statuses):
    alice = db.add_user("alice")
    with pytest.raises(ServiceError, match="Status not found for this user id."):
        statuses.fetch_statuses(alice.id)


def test_delete_statuses(db, statuses):
    alice = db.add_user("alice")
    statuses.post_status(Status(user_id=alice.id, message="x"))
    (status,) = statuses.fetch_statuses(alice.id).data["statuses"]
    assert statuses.delete_statuses(alice.id, [status.id]).message == "Status deleted successfully."
    with pytest.raises(ServiceError):
        statuses.fetch_statuses(alice.id)


def test_delete_unknown_status_ids(db, statuses):
    alice = db.add_user("alice")
    statuses.post_status(Status(user_id=alice.id, message="x"))
    with pytest.raises(ServiceError, match="Status not found.") as err:
        statuses.delete_statuses(alice.id, [12345])
    assert err.value.code == 404


def test_delete_for_user_without_statuses(db, statuses):
    alice = db.add_user("alice")
    with pytest.raises(ServiceError, match="Status not found for this user id."):
        statuses.delete_statuses(alice.id, [1])


def test_search_by_username_prefix(db, statuses):
    alice = db.add_user("alice")
    alicia = db.add_user("Alicia")
    bob = db.add_user("bob")
    for user in (alice, alicia, bob):
        statuses.post_status(Status(user_id=user.id, message=user.username))
    found = statuses.search_statuses_by_username("ali").data
    assert set(found) == {"alice", "Alicia"}
    assert found["Alicia"][0].user_id == alicia.id


def test_search_nothing_found(statuses):
    with pytest.raises(ServiceError, match="Status not found for this username."):
        statuses.search_statuses_by_username("zed")


def test_report_requires_ids(reports):
    with pytest.raises(ServiceError, match="Please enter reporter id and reportee id.") as err:
        reports.report_chat(Report(reporter_id=1))
    assert err.value.code == 400


def test_report_unknown_reportee(db, reports):
    alice = db.add_user("alice")
    with pytest.raises(ServiceError, match="Please check your reporter or reportee ids."):
        reports.report_chat(Report(reporter_id=alice.id, reportee_id=99))


def test_user_reports_escalate_blocks(db, reports):
    target = db.add_user("target")
    reporters = [db.add_user(f"r{n}") for n in range(4)]
    seen = []
    for reporter in reporters:
        reports.report_chat(Report(reporter_id=reporter.id, reportee_id=target.id))
        seen.append(_user_status(db, target.id))
    assert seen == ["TEMPORARY_BLOCKED_1", "TEMPORARY_BLOCKED_7", "TEMPORARY_BLOCKED_30", "INACTIVE"]


def test_duplicate_report_is_not_counted(db, reports):
    target = db.add_user("target")
    reporter = db.add_user("reporter")
    first = reports.report_chat(Report(reporter_id=reporter.id, reportee_id=target.id))
    second = reports.report_chat(Report(reporter_id=reporter.id, reportee_id=target.id))
    assert first.data.id == second.data.id
    assert db.query("SELECT COUNT(*) AS n FROM reports")[0]["n"] == 1


def test_group_report_blocks_then_deletes(db, reports):
    group_id = _make_group(db)
    reporters = [db.add_user(f"r{n}") for n in range(4)]
    for reporter in reporters[:3]:
        reports.report_chat(Report(reporter_id=reporter.id, group_id=group_id))
    (row,) = db.query('SELECT status FROM "groups" WHERE id = ?', (group_id,))
    assert row["status"] == "TEMPORARY_BLOCKED_30"
    reports.report_chat(Report(reporter_id=reporters[3].id, group_id=group_id))
    assert db.query('SELECT id FROM "groups" WHERE id = ?', (group_id,)) == []


def test_group_report_unknown_group(db, reports):
    reporter = db.add_user("reporter")
    with pytest.raises(ServiceError, match="Group id is not found."):
        reports.report_chat(Report(reporter_id=reporter.id, group_id=77))


def test_group_report_unknown_reporter(db, reports):
    group_id = _make_group(db)
    with pytest.raises(ServiceError, match="Reporter id is not found."):
        reports.report_chat(Report(reporter_id=55, group_id=group_id))


def test_lift_expired_one_day_block(db, reports):
    target = db.add_user("target")
    reporter = db.add_user("reporter")
    reports.report_chat(Report(reporter_id=reporter.id, reportee_id=target.id))
    reports.lift_expired_blocks(datetime.now())
    assert _user_status(db, target.id) == "TEMPORARY_BLOCKED_1"
    result = reports.lift_expired_blocks(datetime.now() + timedelta(days=2))
    assert result.data["users"] == 1
    assert _user_status(db, target.id) == "ACTIVE"


def test_lift_keeps_seven_day_block_until_it_ends(db, reports):
    group_id = _make_group(db)
    for reporter in (db.add_user("a"), db.add_user("b")):
        reports.report_chat(Report(reporter_id=reporter.id, group_id=group_id))
    reports.lift_expired_blocks(datetime.now() + timedelta(days=2))
    (row,) = db.query('SELECT status FROM "groups" WHERE id = ?', (group_id,))
    assert row["status"] == "TEMPORARY_BLOCKED_7"
    result = reports.lift_expired_blocks(datetime.now() + timedelta(days=8))
    (row,) = db.query('SELECT status FROM "groups" WHERE id = ?', (group_id,))
    assert row["status"] == "ACTIVE"
    assert result.data["groups"] == 1