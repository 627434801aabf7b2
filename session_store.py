"""Server-side sessions: opaque token -> copy of the user taken at login."""
import secrets
import sqlite3
from datetime import datetime
from flask import current_app
from forum_db import get_db, dict_from_row
from forum_errors import InternalError


class SessionStore:
    """Keeps login snapshots in the `sessions` table.

    The snapshot is a copy: later profile edits do not show up in it until
    the user logs in again. Snapshots older than the app's
    PERMANENT_SESSION_LIFETIME are dropped whenever a new one is created.
    """

    def create(self, user):
        token = secrets.token_urlsafe(32)
        now = datetime.now()
        cutoff = now - current_app.permanent_session_lifetime
        conn = get_db()
        with conn:
            conn.execute("DELETE FROM sessions WHERE created_at < ?",
                         (cutoff.isoformat(sep=' ', timespec='microseconds'),))
            conn.execute("""
                INSERT INTO sessions (token, user_id, username, email, bio, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                token,
                user['id'],
                user['username'],
                user['email'],
                user.get('bio') or '',
                now.isoformat(sep=' ', timespec='microseconds')
            ))
        return token

    def get(self, token):
        if not token:
            return None
        row = get_db().execute(
            "SELECT token, user_id, username, email, bio FROM sessions WHERE token = ?",
            (token,)
        ).fetchone()
        return dict_from_row(row)

    def destroy(self, token):
        """Drop the session. Missing tokens and store failures are only logged."""
        try:
            conn = get_db()
            with conn:
                conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        except (sqlite3.Error, InternalError) as e:
            current_app.logger.error(f"Failed to destroy session: {e}")


def get_session_store():
    return current_app.extensions['session_store']
