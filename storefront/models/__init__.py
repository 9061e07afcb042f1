"""Database models."""

from storefront.models.public_access_token import (
    TOKEN_LENGTH,
    PublicAccessToken,
    ResourceType,
)

__all__ = [
    "TOKEN_LENGTH",
    "PublicAccessToken",
    "ResourceType",
]
