import pytest

from accounts import (register, authenticate, update_profile, get_user,
                      get_user_by_username, get_avatar)
from forum_db import get_db
from forum_errors import DuplicateEmail, InvalidCredentials, NotFound


pytestmark = pytest.mark.usefixtures('app_ctx')


def test_register_creates_user_with_default_profile():
    user = register('alice', 'alice@example.com', 's3cret')

    assert user['username'] == 'alice'
    assert user['email'] == 'alice@example.com'
    assert user['bio'] == ''
    assert user['avatar_content_type'] is None


def test_register_duplicate_email_persists_nothing():
    register('alice', 'alice@example.com', 's3cret')

    with pytest.raises(DuplicateEmail):
        register('alice2', 'alice@example.com', 'other')

    count = get_db().execute("SELECT COUNT(*) FROM users").fetchone()[0]
    assert count == 1


def test_password_is_not_stored_verbatim():
    user = register('alice', 'alice@example.com', 's3cret')
    stored = get_db().execute(
        "SELECT password_hash FROM users WHERE id = ?", (user['id'],)
    ).fetchone()[0]
    assert stored != 's3cret'


def test_authenticate_matches_stored_user():
    user = register('alice', 'alice@example.com', 's3cret')
    assert authenticate('alice@example.com', 's3cret') == user


@pytest.mark.parametrize('email, password', [
    ('alice@example.com', 'wrong'),
    ('alice@example.com', 'S3CRET'),
    ('nobody@example.com', 's3cret'),
    ('alice@example.com', None),
])
def test_authenticate_rejects_bad_credentials(email, password):
    register('alice', 'alice@example.com', 's3cret')
    with pytest.raises(InvalidCredentials):
        authenticate(email, password)


def test_update_profile_bio_only_keeps_avatar():
    user = register('alice', 'alice@example.com', 's3cret')
    update_profile(user['id'], avatar=b'\x89PNG', avatar_content_type='image/png')

    updated = update_profile(user['id'], bio='hello')

    assert updated['bio'] == 'hello'
    assert get_avatar(user['id']) == (b'\x89PNG', 'image/png')


def test_update_profile_avatar_only_keeps_bio():
    user = register('alice', 'alice@example.com', 's3cret', bio='original')

    updated = update_profile(user['id'], avatar=b'GIF89a', avatar_content_type='image/gif')

    assert updated['bio'] == 'original'
    assert updated['avatar_content_type'] == 'image/gif'


def test_update_profile_with_nothing_is_noop():
    user = register('alice', 'alice@example.com', 's3cret', bio='original')
    assert update_profile(user['id']) == user


def test_update_profile_unknown_user():
    with pytest.raises(NotFound):
        update_profile(999, bio='x')


def test_get_avatar_missing():
    user = register('alice', 'alice@example.com', 's3cret')
    with pytest.raises(NotFound):
        get_avatar(user['id'])


def test_get_user_by_username_returns_first_registered():
    first = register('sam', 'sam1@example.com', 'pw')
    register('sam', 'sam2@example.com', 'pw')

    assert get_user_by_username('sam') == first
    with pytest.raises(NotFound):
        get_user_by_username('nobody')
    with pytest.raises(NotFound):
        get_user(12345)


def test_register_race_on_insert_reports_duplicate(monkeypatch):
    register('alice', 'alice@example.com', 's3cret')
    # a concurrent registration committed between the check and the insert
    monkeypatch.setattr('accounts.email_taken', lambda email: False)

    with pytest.raises(DuplicateEmail):
        register('alice2', 'alice@example.com', 'other')

    count = get_db().execute("SELECT COUNT(*) FROM users").fetchone()[0]
    assert count == 1
