"""Exception hierarchy shared across the mailbox sync core."""

from __future__ import annotations


class SubinboxError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(SubinboxError):
    """Raised when settings cannot be turned into a working setup."""


class CommandError(SubinboxError):
    """A remote command failed; ``command`` names the backend command."""

    def __init__(self, message: str, command: str) -> None:
        super().__init__(message)
        self.command = command


class StorageError(SubinboxError):
    """Raised when the local durable store cannot be read or written."""


class DuplicateEntryError(SubinboxError):
    """Raised when inserting an alias whose address is already registered."""


class NotFoundError(SubinboxError):
    """Raised when an alias address is not present in the registry."""


class ValidationError(SubinboxError):
    """Raised for malformed input caught before it reaches the backend."""


class InvalidTransitionError(ValidationError):
    """Raised for an alias status change other than creating->active/failed."""


class NotAuthenticatedError(SubinboxError):
    """Raised when an operation needs a logged-in session and there is none."""
