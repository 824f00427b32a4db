import sqlite3
import time

import pytest

from chatservice.store import Database


@pytest.fixture
def db():
    with Database() as database:
        yield database


def test_add_user_round_trips(db):
    user = db.add_user("alice", "alice@example.com", "pic.png")
    (row,) = db.query("SELECT username, email, profile_pic_url FROM users WHERE id = ?", (user.id,))
    assert tuple(row) == ("alice", "alice@example.com", "pic.png")


def test_add_user_assigns_distinct_ids(db):
    a = db.add_user("a")
    b = db.add_user("b")
    assert a.id < b.id


def test_created_at_is_epoch_milliseconds(db):
    before = time.time() * 1000
    user = db.add_user("carol")
    after = time.time() * 1000
    assert before - 1000 <= user.created_at <= after + 1000


def test_add_friendship_stores_status(db):
    db.add_friendship(1, 2, "PENDING")
    rows = db.query("SELECT friend_id1, friend_id2, friendship_status FROM friends")
    assert [tuple(r) for r in rows] == [(1, 2, "PENDING")]


def test_add_wallpaper_round_trips(db):
    paper = db.add_wallpaper("https://cdn.example.com/w.png", "dark")
    (row,) = db.query("SELECT wallpaper_url, wallpaper_type FROM wallpapers WHERE id = ?", (paper.id,))
    assert tuple(row) == (paper.url, paper.wallpaper_type)


def test_transaction_commits(db):
    with db.transaction():
        db.add_user("dave")
    assert [r["username"] for r in db.query("SELECT username FROM users")] == ["dave"]


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with db.transaction():
            db.add_user("erin")
            raise RuntimeError("boom")
    assert db.query("SELECT * FROM users") == []


def test_nested_transaction_rolls_back_with_outer(db):
    with pytest.raises(KeyError):
        with db.transaction():
            with db.transaction():
                db.add_user("frank")
            raise KeyError("x")
    assert db.query("SELECT * FROM users") == []


def test_execute_reports_rowcount(db):
    db.add_user("gina")
    cursor = db.execute("UPDATE users SET status = ? WHERE username = ?", ("INACTIVE", "gina"))
    assert cursor.rowcount == 1


def test_closed_database_refuses_queries():
    database = Database()
    database.close()
    with pytest.raises(sqlite3.ProgrammingError):
        database.query("SELECT 1")