from datetime import datetime, timedelta

import pytest
from flask import current_app

from accounts import register, update_profile
from forum_db import get_db
from session_store import SessionStore, get_session_store
from user import User


pytestmark = pytest.mark.usefixtures('app_ctx')


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def alice():
    return register('alice', 'alice@example.com', 'pw', bio='hi')


def test_app_exposes_session_store(app):
    assert isinstance(get_session_store(), SessionStore)


def test_snapshot_matches_user_at_login(store, alice):
    token = store.create(alice)

    assert store.get(token) == {
        'token': token,
        'user_id': alice['id'],
        'username': 'alice',
        'email': 'alice@example.com',
        'bio': 'hi',
    }


def test_tokens_are_unique_per_login(store, alice):
    assert store.create(alice) != store.create(alice)


def test_snapshot_ignores_later_profile_edits(store, alice):
    token = store.create(alice)
    update_profile(alice['id'], bio='changed')

    assert store.get(token)['bio'] == 'hi'


def test_destroy_is_idempotent(store, alice):
    token = store.create(alice)

    store.destroy(token)
    store.destroy(token)

    assert store.get(token) is None


def test_get_unknown_or_empty_token(store):
    assert store.get('missing') is None
    assert store.get(None) is None


def test_user_from_snapshot_uses_token_as_id(store, alice):
    token = store.create(alice)
    user = User.from_snapshot(store.get(token))

    assert user.get_id() == token
    assert user.id == alice['id']
    assert user.username == 'alice'


def test_create_prunes_snapshots_past_session_lifetime(store, alice):
    stale = store.create(alice)
    recent = store.create(alice)
    expired_at = datetime.now() - current_app.permanent_session_lifetime - timedelta(days=1)
    conn = get_db()
    with conn:
        conn.execute("UPDATE sessions SET created_at = ? WHERE token = ?",
                     (expired_at.isoformat(sep=' ', timespec='microseconds'), stale))

    newest = store.create(alice)

    assert store.get(stale) is None
    assert store.get(recent) is not None
    assert store.get(newest) is not None
