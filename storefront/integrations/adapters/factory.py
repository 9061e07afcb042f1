"""Store factory for creating the configured access token store."""

from storefront.core.config import settings
from storefront.integrations.interfaces.base import AccessTokenStore


class TokenStoreFactory:
    """Factory for creating the access token store based on configuration."""

    _instance: AccessTokenStore | None = None

    @classmethod
    def get_store(cls) -> AccessTokenStore:
        """Get the configured token store (singleton)."""
        if cls._instance is None:
            cls._instance = cls._create_store()
        return cls._instance

    @classmethod
    def _create_store(cls) -> AccessTokenStore:
        """Create a new store instance based on configuration."""
        store_type = settings.TOKEN_STORE

        if store_type == "database":
            from storefront.db.session import AsyncSessionLocal
            from storefront.integrations.adapters.database import DatabaseTokenStore

            return DatabaseTokenStore(AsyncSessionLocal)

        elif store_type == "memory":
            from storefront.integrations.adapters.memory import InMemoryTokenStore

            return InMemoryTokenStore()

        else:
            raise ValueError(f"Unknown token store type: {store_type}")

    @classmethod
    def reset(cls) -> None:
        """Reset the store instance (useful for testing)."""
        cls._instance = None


def get_token_store() -> AccessTokenStore:
    """Convenience function to get the access token store."""
    return TokenStoreFactory.get_store()
