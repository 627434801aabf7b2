class ForumError(Exception):
    """Base class for errors raised by the forum stores."""


class DuplicateEmail(ForumError):
    pass


class InvalidCredentials(ForumError):
    pass


class NotFound(ForumError):
    """A post or user id/username did not resolve to a record."""


class AuthRequired(ForumError):
    pass


class InternalError(ForumError):
    """The database could not be reached or failed mid-request."""
