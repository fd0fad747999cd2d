"""Domain errors raised below the HTTP layer."""
from __future__ import annotations


class NotFoundError(LookupError):
    """A required single-row lookup returned nothing."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PermissionDeniedError(PermissionError):
    """The current identity does not own the record it tried to change."""


class AuthenticationRequiredError(RuntimeError):
    """An operation that needs a signed-in identity was attempted without one."""


class StorageError(RuntimeError):
    """Object storage rejected an upload or delete."""
