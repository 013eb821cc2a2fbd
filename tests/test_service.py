import pytest

from shortener import service
from shortener.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from shortener.models import Link, User


@pytest.fixture
def users(store):
    store.add_user(User(id="alice", email="alice@example.com", password_hash="h"))
    store.add_user(User(id="bob", email="bob@example.com", password_hash="h"))
    return store


def test_aggregate_counts_total_and_unique():
    assert service.aggregate({"v1": 3, "v2": 5}) == (8, 2)


def test_aggregate_empty():
    stats = service.aggregate({})
    assert stats.total == 0
    assert stats.unique == 0


def test_aggregate_accepts_link():
    link = Link(id="abc", long_url="http://example.com", owner_id="alice", visits={"v1": 1})
    assert service.aggregate(link) == (1, 1)


def test_create_then_resolve(users):
    link = service.create(users, "alice", "https://www.tsn.ca")
    assert len(link.id) == 6
    assert link.visits == {}
    assert link.created_at.tzinfo is not None
    assert service.resolve(users, link.id) == "https://www.tsn.ca"


def test_create_requires_owner(users):
    with pytest.raises(Unauthenticated):
        service.create(users, None, "https://www.tsn.ca")


def test_create_requires_url(users):
    with pytest.raises(ValidationFailed):
        service.create(users, "alice", "   ")


def test_resolve_unknown(users):
    with pytest.raises(NotFound):
        service.resolve(users, "nope")


def test_create_retries_on_collision(users, monkeypatch):
    service.create(users, "alice", "https://one.example")
    taken = users.list_links()[0].id
    codes = iter([taken, taken, "fresh1"])
    monkeypatch.setattr(service, "generate_id", lambda length: next(codes))

    link = service.create(users, "bob", "https://two.example")

    assert link.id == "fresh1"
    assert service.resolve(users, taken) == "https://one.example"


def test_create_gives_up_after_max_attempts(users, monkeypatch):
    service.create(users, "alice", "https://one.example")
    taken = users.list_links()[0].id
    monkeypatch.setattr(service, "generate_id", lambda length: taken)

    with pytest.raises(Conflict):
        service.create(users, "bob", "https://two.example", max_attempts=3)
    assert len(users.list_links()) == 1


def test_links_for_user_filters_by_owner_in_insertion_order(users):
    first = service.create(users, "alice", "https://a.example")
    service.create(users, "bob", "https://b.example")
    second = service.create(users, "alice", "https://c.example")

    views = service.links_for_user("alice", users)

    assert list(views) == [first.id, second.id]
    assert all(v.link.owner_id == "alice" for v in views.values())


def test_links_for_user_empty(users):
    service.create(users, "alice", "https://a.example")
    assert service.links_for_user("bob", users) == {}


def test_links_for_user_includes_stats(users):
    link = service.create(users, "alice", "https://a.example")
    service.record_visit(users, link.id, "v1")
    service.record_visit(users, link.id, "v1")
    service.record_visit(users, link.id, "v2")

    view = service.links_for_user("alice", users)[link.id]

    assert view.total == 3
    assert view.unique == 2
    assert view.long_url == "https://a.example"


def test_record_visit_unknown_link(users):
    with pytest.raises(NotFound):
        service.record_visit(users, "nope", "v1")


def test_update_by_owner(users):
    link = service.create(users, "alice", "https://a.example")
    updated = service.update(users, link.id, "alice", "https://new.example")
    assert updated.long_url == "https://new.example"
    assert service.resolve(users, link.id) == "https://new.example"


def test_update_by_other_user_is_forbidden(users):
    link = service.create(users, "alice", "https://a.example")
    with pytest.raises(Forbidden):
        service.update(users, link.id, "bob", "https://evil.example")
    assert service.resolve(users, link.id) == "https://a.example"


def test_update_unknown_link(users):
    with pytest.raises(NotFound):
        service.update(users, "nope", "alice", "https://a.example")


def test_delete_by_other_user_is_forbidden(users):
    link = service.create(users, "alice", "https://a.example")
    with pytest.raises(Forbidden):
        service.delete(users, link.id, "bob")
    assert users.get_link(link.id) is not None


def test_delete_twice_raises_not_found(users):
    link = service.create(users, "alice", "https://a.example")
    service.delete(users, link.id, "alice")
    with pytest.raises(NotFound):
        service.delete(users, link.id, "alice")
    with pytest.raises(NotFound):
        service.delete(users, link.id, "alice")


def test_get_owned(users):
    link = service.create(users, "alice", "https://a.example")
    assert service.get_owned(users, link.id, "alice").id == link.id
    with pytest.raises(Forbidden):
        service.get_owned(users, link.id, "bob")
    with pytest.raises(NotFound):
        service.get_owned(users, "nope", "alice")


def test_create_for_unknown_owner(users):
    with pytest.raises(Unauthenticated):
        service.create(users, "ghost", "https://a.example")
    assert users.list_links() == []
