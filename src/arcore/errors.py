"""Error taxonomy shared by the registry, resolver, ledger and orchestrator."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arcore.model.messages import MessageBag


class ArcoreError(Exception):
    """Base class for errors raised by arcore."""


class ConfigurationError(ArcoreError):
    """Raised for invalid or missing relationship metadata and settings."""


class NotFoundError(ArcoreError, LookupError):
    """Raised when a relation name (or model type) is not registered."""


class PreconditionError(ArcoreError):
    """Raised when an operation is attempted in a state that does not allow it."""


class UnsupportedOperationError(ArcoreError):
    """Raised when an operation is not valid for a relationship kind."""


class StorageError(ArcoreError):
    """Raised when the storage collaborator fails; the transaction was rolled back."""


class ValidationError(ArcoreError):
    """Raised when attribute rules fail."""

    def __init__(self, messages: MessageBag) -> None:
        self.messages = messages
        first = messages.first()
        super().__init__(first or "The given data was invalid.")
