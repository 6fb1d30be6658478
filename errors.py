class NotFoundError(ValueError):
    """Raised when a referenced row does not exist."""


class SessionClosedError(ValueError):
    """Raised when a finished workout session would be mutated."""


class StoreWriteError(RuntimeError):
    """Raised when the database rejects a write."""


class DuplicateEntryError(StoreWriteError):
    """Raised when a write collides with a unique key."""
