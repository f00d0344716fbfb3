"""Error taxonomy shared by stores, backends and the API layer.

Pricing functions raise only InputValidationError / NotFoundError; everything
else originates in the catalog store, the quote store or a storage backend and
propagates unchanged to the caller.
"""

from __future__ import annotations


class QuotingError(Exception):
    """Base class for every domain error raised by this package."""


class NotFoundError(QuotingError):
    """A referenced unit, discount rule or quote does not exist."""

    def __init__(self, entity: str, record_id: str) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found")


class UnauthorizedError(QuotingError):
    """The caller is missing, not the owner, or not an administrator."""


class InputValidationError(QuotingError):
    """Malformed input rejected before any store is mutated."""


class BackendError(QuotingError):
    """The persistence backend rejected the request."""

    retryable = False


class BackendUnavailableError(BackendError):
    """The persistence backend could not be reached or timed out. Safe to retry."""

    retryable = True
