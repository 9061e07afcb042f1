"""Base interface for access token storage.

The token service is constructed with an AccessTokenStore instead of reaching
for a shared database client, so the same lifecycle logic runs against
Postgres in production and an in-memory store in tests and local demos.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class TokenStoreError(Exception):
    """Raised when the backing store fails (connection, constraint, timeout)."""


@dataclass
class AccessTokenRecord:
    """Standardized access token row, independent of the storage backend."""

    token: str
    resource_type: str
    resource_id: str
    expires_at: datetime
    one_time_use: bool = False
    used_at: datetime | None = None
    created_by: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


class AccessTokenStore(ABC):
    """Persistence contract for public access tokens.

    Every method is one round trip to the store. Implementations raise
    TokenStoreError on failure and never leak driver exceptions.
    """

    @abstractmethod
    async def insert(self, record: AccessTokenRecord) -> None:
        """Persist a new token row."""
        pass

    @abstractmethod
    async def get(self, token: str) -> AccessTokenRecord | None:
        """Fetch a token row by exact token match."""
        pass

    @abstractmethod
    async def mark_used(self, token: str, used_at: datetime) -> bool:
        """
        Set used_at on a token only if it is still unset.

        This must be a single conditional write (compare-and-swap). Returns
        True if this call changed the row, False if another caller already
        consumed it or the row is gone.
        """
        pass

    @abstractmethod
    async def delete(self, token: str) -> int:
        """Delete one token. Returns the number of rows removed."""
        pass

    @abstractmethod
    async def delete_for_resource(self, resource_type: str, resource_id: str) -> int:
        """Delete every token bound to a resource."""
        pass

    @abstractmethod
    async def delete_expired_used(self, now: datetime) -> int:
        """Delete tokens with expires_at < now and used_at set."""
        pass

    @abstractmethod
    async def count_expired_used(self, now: datetime) -> int:
        """Count tokens that delete_expired_used would remove."""
        pass
