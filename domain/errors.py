class CommentError(Exception):
    """Base class for failures reported by the comment operations."""


class ValidationError(CommentError):
    """Caller-supplied input broke a documented precondition. Nothing was written."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StorageError(CommentError):
    """The backing store could not complete the operation. Not retried here."""
