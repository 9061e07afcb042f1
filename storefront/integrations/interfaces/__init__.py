"""Interface definitions for storage adapters."""

from storefront.integrations.interfaces.base import (
    AccessTokenRecord,
    AccessTokenStore,
    TokenStoreError,
)

__all__ = [
    "AccessTokenRecord",
    "AccessTokenStore",
    "TokenStoreError",
]
