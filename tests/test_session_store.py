"""Unit tests for auth/store.py -- session repository.

Covers:
- create / get round trip, timezone-aware expiry
- delete_session is idempotent
- delete_for_user honours the exclusion list and touches no other user
- exclusion values are bound parameters (quote characters are harmless)
- delete_expired removes exactly the rows with expires_on < now
- delete_if_expired leaves live sessions alone
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import Session
from users.models import User

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def two_users(user_store):
    alice = user_store.create_user(User(email="alice@x.com", password_hash="h", created_at=NOW))
    bob = user_store.create_user(User(email="bob@x.com", password_hash="h", created_at=NOW))
    return alice, bob


def _session(token: str, user, offset: timedelta = timedelta(hours=1)) -> Session:
    return Session(id=token, user_id=user.id, expires_on=NOW + offset)


def test_create_and_get(session_store, two_users):
    alice, _ = two_users
    created = session_store.create_session(_session("t1", alice))
    fetched = session_store.get_session("t1")
    assert fetched == created
    assert fetched.expires_on.tzinfo is not None
    assert session_store.get_session("missing") is None


def test_delete_session_is_idempotent(session_store, two_users):
    alice, _ = two_users
    session_store.create_session(_session("t1", alice))
    assert session_store.delete_session("t1") is True
    assert session_store.delete_session("t1") is False
    assert session_store.get_session("t1") is None


def test_list_for_user_orders_and_filters(session_store, two_users):
    alice, bob = two_users
    session_store.create_session(_session("old", alice, timedelta(minutes=-5)))
    session_store.create_session(_session("soon", alice, timedelta(hours=1)))
    session_store.create_session(_session("later", alice, timedelta(hours=5)))
    session_store.create_session(_session("bob", bob))

    assert [s.id for s in session_store.list_for_user(alice.id)] == ["later", "soon", "old"]
    assert [s.id for s in session_store.list_for_user(alice.id, now=NOW)] == ["later", "soon"]


def test_delete_for_user_keeps_excluded(session_store, two_users):
    alice, bob = two_users
    for token in ("a1", "a2", "a3"):
        session_store.create_session(_session(token, alice))
    session_store.create_session(_session("b1", bob))

    deleted = session_store.delete_for_user(alice.id, exclude={"a2"})

    assert deleted == 2
    assert [s.id for s in session_store.list_for_user(alice.id)] == ["a2"]
    assert session_store.get_session("b1") is not None


def test_delete_for_user_without_exclusions(session_store, two_users):
    alice, bob = two_users
    session_store.create_session(_session("a1", alice))
    session_store.create_session(_session("b1", bob))
    assert session_store.delete_for_user(alice.id) == 1
    assert session_store.get_session("b1") is not None


def test_delete_for_user_exclusions_are_bound_parameters(session_store, two_users):
    alice, _ = two_users
    session_store.create_session(_session("a1", alice))
    session_store.create_session(_session("a2", alice))
    hostile = "x') OR ('1'='1"
    assert session_store.delete_for_user(alice.id, exclude=[hostile, "a2"]) == 1
    assert session_store.get_session("a2") is not None


def test_delete_expired(session_store, two_users):
    alice, bob = two_users
    session_store.create_session(_session("expired", alice, timedelta(seconds=-1)))
    session_store.create_session(_session("boundary", alice, timedelta(0)))
    session_store.create_session(_session("live", bob, timedelta(seconds=1)))

    assert session_store.delete_expired(NOW) == 1

    assert session_store.get_session("expired") is None
    assert session_store.get_session("boundary") is not None
    assert session_store.get_session("live") is not None


def test_delete_if_expired(session_store, two_users):
    alice, _ = two_users
    session_store.create_session(_session("live", alice, timedelta(hours=1)))
    session_store.create_session(_session("dead", alice, timedelta(0)))

    assert session_store.delete_if_expired("live", NOW) is False
    assert session_store.delete_if_expired("dead", NOW) is True
    assert session_store.get_session("live") is not None
