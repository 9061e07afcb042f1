"""Admin endpoints for public access tokens.

Used by storefront back-office workflows (order emails, proof uploads,
invoicing, resource deletion) that run in another service. All routes require
the X-Admin-Key header.
"""

from fastapi import APIRouter, Depends, Request, status

from storefront.api.deps import AccessTokenServiceDep, require_admin_key
from storefront.core.errors import ServiceUnavailableError, TokenIssueError
from storefront.core.rate_limit import RateLimits, limiter
from storefront.integrations.interfaces.base import TokenStoreError
from storefront.models.public_access_token import ResourceType
from storefront.schemas.access_token import (
    CleanupResponse,
    CleanupStatsResponse,
    LinkKind,
    LinkRequest,
    ProofReviewLinksResponse,
    PublicLinkResponse,
    RevocationResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)
from storefront.services.public_links import PublicLinkGenerator

router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.post("", response_model=TokenIssueResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.ADMIN)
async def issue_token(
    request: Request,
    data: TokenIssueRequest,
    service: AccessTokenServiceDep,
):
    """
    Issue a raw public access token.

    The token value appears in this response only; it cannot be retrieved
    again.
    """
    result = await service.create_token(
        resource_type=data.resource_type,
        resource_id=data.resource_id,
        expires_in_hours=data.expires_in_hours,
        one_time_use=data.one_time_use,
        created_by=data.created_by,
    )
    if not result.success:
        raise TokenIssueError()

    return TokenIssueResponse(
        token=result.token,
        resource_type=data.resource_type,
        resource_id=data.resource_id,
        expires_at=result.expires_at,
        one_time_use=data.one_time_use,
    )


@router.post(
    "/links/{kind}",
    response_model=PublicLinkResponse | ProofReviewLinksResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(RateLimits.ADMIN)
async def generate_link(
    request: Request,
    kind: LinkKind,
    data: LinkRequest,
    service: AccessTokenServiceDep,
):
    """
    Generate the emailed link(s) for a resource with its fixed policy.

    - proof-review: approve + revise links, one-time tokens, 72 hours
    - order-status: reusable, 7 days
    - invoice-payment: reusable, 30 days
    - design-access: reusable, 30 days
    """
    generator = PublicLinkGenerator(service, base_url=data.base_url)

    if kind == LinkKind.PROOF_REVIEW:
        links = await generator.generate_proof_review_links(data.resource_id)
        if links is None:
            raise TokenIssueError()
        return ProofReviewLinksResponse(
            approve_link=links.approve_link,
            revise_link=links.revise_link,
            approval_token=links.approval_token,
            revision_token=links.revision_token,
        )

    builders = {
        LinkKind.ORDER_STATUS: generator.generate_order_status_link,
        LinkKind.INVOICE_PAYMENT: generator.generate_invoice_payment_link,
        LinkKind.DESIGN_ACCESS: generator.generate_design_access_link,
    }
    link = await builders[kind](data.resource_id)
    if link is None:
        raise TokenIssueError()

    return PublicLinkResponse(url=link.url, token=link.token)


@router.delete("/resources/{resource_type}/{resource_id}", response_model=RevocationResponse)
@limiter.limit(RateLimits.ADMIN)
async def revoke_resource_tokens(
    request: Request,
    resource_type: ResourceType,
    resource_id: str,
    service: AccessTokenServiceDep,
):
    """Revoke every outstanding token for a resource (e.g. after deletion)."""
    revoked = await service.revoke_resource_tokens(resource_type, resource_id)
    if not revoked:
        raise ServiceUnavailableError("Failed to revoke tokens")
    return RevocationResponse(revoked=True)


@router.delete("/{token}", response_model=RevocationResponse)
@limiter.limit(RateLimits.ADMIN)
async def revoke_token(
    request: Request,
    token: str,
    service: AccessTokenServiceDep,
):
    """Revoke a single token. Revoking an unknown token is not an error."""
    revoked = await service.revoke_token(token)
    if not revoked:
        raise ServiceUnavailableError("Failed to revoke token")
    return RevocationResponse(revoked=True)


@router.post("/cleanup", response_model=CleanupResponse)
@limiter.limit(RateLimits.ADMIN)
async def run_cleanup(
    request: Request,
    service: AccessTokenServiceDep,
):
    """Delete tokens that are expired and already used."""
    deleted = await service.cleanup_expired_tokens()
    return CleanupResponse(deleted=deleted)


@router.get("/cleanup/stats", response_model=CleanupStatsResponse)
@limiter.limit(RateLimits.ADMIN)
async def cleanup_stats(
    request: Request,
    service: AccessTokenServiceDep,
):
    """Count tokens the next cleanup run would delete."""
    try:
        eligible = await service.count_cleanup_candidates()
    except TokenStoreError:
        raise ServiceUnavailableError("Token store unavailable")
    return CleanupStatsResponse(eligible=eligible)
