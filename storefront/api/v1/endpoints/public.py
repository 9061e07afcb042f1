"""Public token resolution endpoints.

These are the only endpoints reachable without credentials: the token in the
query string IS the credential. Every failure returns the identical 404 body
("Resource not found") whether the token was malformed, unknown, expired,
already used, or minted for another resource type.

The storefront frontend calls these from the emailed link pages
(/orders/track, /proofs/review, /invoices/pay, /designs/view), then loads the
resource through its normal access path using the returned id.
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from storefront.api.deps import AccessTokenServiceDep, resolve_public_token
from storefront.core.client_ip import get_client_ip
from storefront.core.errors import PublicResourceNotFound
from storefront.core.rate_limit import RateLimits, limiter
from storefront.core.security_events import security_events
from storefront.models.public_access_token import ResourceType
from storefront.schemas.access_token import (
    ProofReviewAction,
    ProofReviewResolution,
    ResolvedResourceResponse,
)

router = APIRouter()


@router.post("/proofs/review", response_model=ProofReviewResolution)
@limiter.limit(RateLimits.PUBLIC_TOKEN)
async def resolve_proof_review(
    request: Request,
    service: AccessTokenServiceDep,
    action: ProofReviewAction,
    token: Annotated[str | None, Query()] = None,
):
    """
    Redeem a proof review link.

    Proof review tokens are one-time-use: the first successful call consumes
    the token and every later call (including concurrent ones) gets 404.
    Each token is minted for one action. Posting the approve token with
    action=revise (or the reverse) consumes the token and returns 404.
    Recording the approval or revision itself is left to the proofing
    workflow, which receives the proof id and action from this response.
    """
    result = await resolve_public_token(request, service, token, ResourceType.PROOF)

    bound_action = result.metadata.get("action")
    if bound_action is not None and bound_action != action.value:
        security_events.log_token_rejected(
            token=token,
            reason="action_mismatch",
            expected_resource_type=ResourceType.PROOF.value,
            resource_type=result.resource_type.value,
            resource_id=result.resource_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            extra_details={"bound_action": bound_action, "requested_action": action.value},
        )
        raise PublicResourceNotFound()

    return ProofReviewResolution(
        resource_type=result.resource_type,
        resource_id=result.resource_id,
        action=action,
    )


@router.get("/{resource_type}", response_model=ResolvedResourceResponse)
@limiter.limit(RateLimits.PUBLIC_TOKEN)
async def resolve_resource(
    request: Request,
    resource_type: ResourceType,
    service: AccessTokenServiceDep,
    token: Annotated[str | None, Query()] = None,
):
    """
    Resolve a token to the resource it is bound to.

    Example: GET /api/v1/public/order?token=<64 hex chars>
    """
    result = await resolve_public_token(request, service, token, resource_type)

    return ResolvedResourceResponse(
        resource_type=result.resource_type,
        resource_id=result.resource_id,
    )
