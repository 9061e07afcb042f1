"""Storage adapters for access tokens."""

from storefront.integrations.adapters.factory import TokenStoreFactory, get_token_store

__all__ = [
    "TokenStoreFactory",
    "get_token_store",
]
