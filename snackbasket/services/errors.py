from __future__ import annotations


class NotFoundError(ValueError):
    """Raised when an operation targets an id that does not exist."""


class ValidationFailure(ValueError):
    """Raised when required input is missing or malformed."""


class BackendFailure(RuntimeError):
    """Raised when the database or a remote collaborator rejects a call."""
