from flask_login import UserMixin

class User(UserMixin):
    """Logged-in user for flask-login, built from a session snapshot.

    `get_id` returns the session token rather than the user id, so the
    flask-login cookie only ever carries the opaque token.
    """
    def __init__(self, token, id, username, email, bio=''):
        self.token = token
        self.id = id
        self.username = username
        self.email = email
        self.bio = bio

    @classmethod
    def from_snapshot(cls, snapshot):
        return cls(snapshot['token'], snapshot['user_id'], snapshot['username'],
                   snapshot['email'], snapshot['bio'])

    def get_id(self):
        return self.token

    def __repr__(self):
        return f"<User id={self.id} username={self.username!r}>"
