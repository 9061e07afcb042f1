"""API dependencies for dependency injection."""

import hmac
import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from storefront.core.client_ip import get_client_ip
from storefront.core.config import settings
from storefront.core.errors import PublicResourceNotFound, ServiceUnavailableError, UnauthorizedError
from storefront.core.security_events import security_events
from storefront.integrations.adapters.factory import get_token_store
from storefront.models.public_access_token import ResourceType
from storefront.services.public_access_tokens import (
    PublicAccessTokenService,
    TokenValidationResult,
)

admin_logger = logging.getLogger("security.admin")

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def get_access_token_service() -> PublicAccessTokenService:
    """Build the token service on the configured store."""
    return PublicAccessTokenService(get_token_store())


AccessTokenServiceDep = Annotated[PublicAccessTokenService, Depends(get_access_token_service)]


async def require_admin_key(
    request: Request,
    api_key: Annotated[str | None, Depends(admin_key_header)],
) -> None:
    """Require a valid X-Admin-Key header.

    Admin endpoints are disabled (503) when ADMIN_API_KEY is not configured.
    """
    expected = settings.ADMIN_API_KEY
    if not expected:
        raise ServiceUnavailableError("Admin API is not configured")

    if not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        admin_logger.warning("Rejected admin request with invalid key")
        security_events.log_admin_key_invalid(
            endpoint=request.url.path,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        raise UnauthorizedError("Invalid admin key")


async def resolve_public_token(
    request: Request,
    service: PublicAccessTokenService,
    token: str | None,
    resource_type: ResourceType,
) -> TokenValidationResult:
    """
    Validate a public token from a query parameter or raise the generic 404.

    Any failure (missing, malformed, unknown, expired, reused, wrong type)
    raises the same PublicResourceNotFound. Called from the endpoint body,
    not as a dependency, so rate limiting runs before the token is touched.
    """
    if not token:
        raise PublicResourceNotFound()

    result = await service.validate_token(
        token,
        resource_type,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if not result.success:
        raise PublicResourceNotFound()
    return result
