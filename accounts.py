"""Identity store: registration, credential checks and profile updates.

Passwords are stored as werkzeug salted hashes, never in plain text.
"""
import sqlite3
from werkzeug.security import generate_password_hash, check_password_hash
from forum_db import get_db, dict_from_row
from forum_errors import DuplicateEmail, InvalidCredentials, NotFound

# Public fields only; blobs and the password hash are fetched on demand.
USER_COLUMNS = "id, username, email, bio, avatar_content_type"


def get_user(user_id):
    cursor = get_db().execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
    user = dict_from_row(cursor.fetchone())
    if user is None:
        raise NotFound('User not found')
    return user


def get_user_by_username(username):
    """First user registered under `username` (usernames are not unique)."""
    cursor = get_db().execute(
        f"SELECT {USER_COLUMNS} FROM users WHERE username = ? ORDER BY id LIMIT 1",
        (username,)
    )
    user = dict_from_row(cursor.fetchone())
    if user is None:
        raise NotFound('User not found')
    return user


def email_taken(email):
    return get_db().execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone() is not None


def register(username, email, password, bio=''):
    """Create a user keyed by `email`; raises DuplicateEmail if it is taken."""
    if email_taken(email):
        raise DuplicateEmail('Email already registered')

    conn = get_db()
    try:
        with conn:
            cursor = conn.execute(
                "INSERT INTO users (username, email, password_hash, bio) VALUES (?, ?, ?, ?)",
                (username, email, generate_password_hash(password), bio)
            )
    except sqlite3.IntegrityError as e:
        # lost the race against a concurrent registration
        raise DuplicateEmail('Email already registered') from e
    return get_user(cursor.lastrowid)


def authenticate(email, password):
    """Return the user owning `email` when `password` matches its hash."""
    row = get_db().execute(
        "SELECT id, password_hash FROM users WHERE email = ?", (email,)
    ).fetchone()
    if not row or not check_password_hash(row['password_hash'], password or ''):
        raise InvalidCredentials('Invalid email or password')
    return get_user(row['id'])


def update_profile(user_id, bio=None, avatar=None, avatar_content_type=None):
    """Replace bio and/or avatar. Arguments left as None keep their stored value."""
    get_user(user_id)

    assignments = []
    params = []
    if bio is not None:
        assignments.append("bio = ?")
        params.append(bio)
    if avatar is not None:
        assignments.append("avatar = ?")
        assignments.append("avatar_content_type = ?")
        params.extend([avatar, avatar_content_type])

    if assignments:
        conn = get_db()
        with conn:
            conn.execute(
                f"UPDATE users SET {', '.join(assignments)} WHERE id = ?",
                params + [user_id]
            )
    return get_user(user_id)


def get_avatar(user_id):
    """Return (bytes, content_type) for the user's avatar."""
    row = get_db().execute(
        "SELECT avatar, avatar_content_type FROM users WHERE id = ?", (user_id,)
    ).fetchone()
    if not row or row['avatar'] is None:
        raise NotFound('Avatar not found')
    return row['avatar'], row['avatar_content_type']
