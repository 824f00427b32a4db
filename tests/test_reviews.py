import pytest

from chatservice.models import Review, ServiceError
from chatservice.reviews import ReviewRepository
from chatservice.store import Database


@pytest.fixture
def db():
    with Database() as database:
        yield database


@pytest.fixture
def repo(db):
    return ReviewRepository(db)


def test_save_review_returns_saved_review(repo):
    response = repo.save_review(Review(concert_id=1, user_id=2, rating=4, feedback="great"))
    assert response.message == "Review is Saved successfully."
    assert response.data.id is not None
    assert (response.data.concert_id, response.data.user_id, response.data.feedback) == (1, 2, "great")


def test_second_review_by_same_user_is_not_stored(repo, db):
    first = repo.save_review(Review(concert_id=1, user_id=2, rating=4, feedback="great"))
    second = repo.save_review(Review(concert_id=1, user_id=2, rating=1, feedback="changed"))
    assert second.message == "You have already reviewed."
    assert second.data.id == first.data.id
    assert second.data.feedback == "great"
    assert len(db.query("SELECT * FROM reviews")) == 1


def test_save_on_closed_database_raises(db):
    repo = ReviewRepository(db)
    db.close()
    with pytest.raises(ServiceError, match="Review is not saved."):
        repo.save_review(Review(concert_id=1, user_id=2, rating=3))


def test_get_reviews_without_any(repo):
    response = repo.get_reviews(9, {})
    assert (response.message, response.data) == ("Reveiws not found.", [])


def test_get_reviews_joins_author(repo, db):
    user = db.add_user("alice", "alice@example.com", "pic.png")
    repo.save_review(Review(concert_id=5, user_id=user.id, rating=5, feedback="loved it"))
    response = repo.get_reviews(5, {})
    assert response.message == "Reviews found."
    (entry,) = response.data
    assert (entry.username, entry.profile_pic_url, entry.feedback) == ("alice", "pic.png", "loved it")


def test_get_reviews_only_for_requested_concert(repo, db):
    a = db.add_user("a")
    repo.save_review(Review(concert_id=5, user_id=a.id, rating=5))
    repo.save_review(Review(concert_id=6, user_id=a.id, rating=2))
    assert [e.concert_id for e in repo.get_reviews(6).data] == [6]


def test_get_reviews_paginates(repo, db):
    users = [db.add_user(name) for name in ("a", "b", "c")]
    for user in users:
        repo.save_review(Review(concert_id=5, user_id=user.id, rating=3))
    page = repo.get_reviews(5, {"limit": ["1"], "page": ["1"]})
    assert [e.user_id for e in page.data] == [users[1].id]


def test_overall_rating_is_average(repo):
    repo.save_review(Review(concert_id=3, user_id=1, rating=2))
    repo.save_review(Review(concert_id=3, user_id=2, rating=4))
    response = repo.get_overall_rating(3)
    assert response.message == "Review found"
    assert response.data == pytest.approx(3.0)


def test_overall_rating_without_reviews(repo):
    response = repo.get_overall_rating(3)
    assert (response.message, response.data) == ("Review not found.", 0.0)