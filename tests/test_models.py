import pytest

from chatservice.models import (
    Group,
    Notification,
    NotificationOutbox,
    Pagination,
    Response,
    ServiceError,
    pagination_from_query,
)


def _note(text):
    return Notification(1, 2, "alice", "bob", text, "Group Invitation", "GROUP_CHAT_INVITATION")


def test_pagination_reads_list_values():
    p = pagination_from_query({"limit": ["5"], "page": ["2"]})
    assert (p.limit, p.page) == (5, 2)
    assert p.offset == p.limit * p.page


def test_pagination_reads_plain_strings():
    p = pagination_from_query({"limit": "7", "page": "3"})
    assert p == Pagination(limit=7, page=3)


def test_pagination_missing_values_fall_back_to_defaults():
    assert pagination_from_query(None) == pagination_from_query({}) == Pagination()
    assert pagination_from_query({"limit": [""]}) == Pagination()


def test_pagination_first_page_has_no_offset():
    assert pagination_from_query({"limit": "4"}).offset == 0


@pytest.mark.parametrize(
    "query", [{"limit": "abc"}, {"page": "-1"}, {"limit": "0"}, {"page": ["x"]}]
)
def test_pagination_rejects_bad_values(query):
    with pytest.raises(ServiceError) as info:
        pagination_from_query(query)
    assert info.value.code == 400


def test_service_error_carries_message_and_code():
    err = ServiceError("Group is not found", 404)
    assert err.message == "Group is not found"
    assert err.code == 404
    assert str(err) == "Group is not found"


def test_response_defaults_to_ok():
    r = Response("Status found.")
    assert (r.code, r.data) == (200, None)


def test_group_lists_are_independent():
    a = Group("one")
    b = Group("two")
    a.user_ids.append(3)
    assert b.user_ids == []


def test_outbox_drain_returns_in_order_and_empties():
    box = NotificationOutbox()
    box.push(_note("first"))
    box.push(_note("second"))
    assert len(box) == 2
    assert [n.message for n in box.drain()] == ["first", "second"]
    assert box.drain() == []
    assert len(box) == 0