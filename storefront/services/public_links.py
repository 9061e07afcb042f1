"""Secure public links for customer emails.

Links embed a public access token instead of a guessable resource id. Each
resource type has a fixed TTL and use policy. Helpers return None when a
token cannot be minted so the calling workflow (order creation, proof
upload, invoicing) can skip the email instead of failing.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple

from storefront.core.config import settings
from storefront.models.public_access_token import ResourceType
from storefront.services.public_access_tokens import PublicAccessTokenService

logger = logging.getLogger(__name__)

LINK_CREATED_BY = "email-link-generator"

# Stored in proof review token metadata; the review endpoint only honors the
# action its token was minted for
PROOF_ACTION_APPROVE = "approve"
PROOF_ACTION_REVISE = "revise"


class LinkPolicy(NamedTuple):
    """TTL and use policy for one kind of emailed link."""

    resource_type: ResourceType
    expires_in_hours: int
    one_time_use: bool
    path: str


# Two independent one-time tokens per proof so one link cannot both approve and revise
PROOF_REVIEW_POLICY = LinkPolicy(ResourceType.PROOF, 72, True, "/proofs/review")
# Customers check status repeatedly
ORDER_STATUS_POLICY = LinkPolicy(ResourceType.ORDER, 7 * 24, False, "/orders/track")
# Payment may take several attempts
INVOICE_PAYMENT_POLICY = LinkPolicy(ResourceType.INVOICE, 30 * 24, False, "/invoices/pay")
# Extended window for design uploads
DESIGN_ACCESS_POLICY = LinkPolicy(ResourceType.DESIGN, 30 * 24, False, "/designs/view")


@dataclass
class PublicLink:
    """A customer URL and the token embedded in it."""

    url: str
    token: str


@dataclass
class ProofReviewLinks:
    """Approve and revise links for a proof, each with its own one-time token."""

    approve_link: str
    revise_link: str
    approval_token: str
    revision_token: str


def embed_token_in_url(base_url: str, token: str, param_name: str = "token") -> str:
    """Append a token query parameter to a URL.

    Args:
        base_url: The URL, with or without an existing query string
        token: The token to embed
        param_name: Query parameter name

    Returns:
        Full URL with token
    """
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{param_name}={token}"


class PublicLinkGenerator:
    """Builds emailed links on top of PublicAccessTokenService."""

    def __init__(self, service: PublicAccessTokenService, base_url: str | None = None):
        self.service = service
        self.base_url = (base_url or settings.FRONTEND_URL).rstrip("/")

    async def _issue(
        self, policy: LinkPolicy, resource_id: str, metadata: dict | None = None
    ) -> str | None:
        result = await self.service.create_token(
            resource_type=policy.resource_type,
            resource_id=resource_id,
            expires_in_hours=policy.expires_in_hours,
            one_time_use=policy.one_time_use,
            created_by=LINK_CREATED_BY,
            metadata=metadata,
        )
        return result.token if result.success else None

    async def _single_link(self, policy: LinkPolicy, resource_id: str) -> PublicLink | None:
        token = await self._issue(policy, resource_id)
        if token is None:
            logger.error(f"Failed to generate {policy.resource_type.value} access token")
            return None

        return PublicLink(
            url=embed_token_in_url(f"{self.base_url}{policy.path}", token),
            token=token,
        )

    async def generate_proof_review_links(self, proof_id: str) -> ProofReviewLinks | None:
        """Approve/revise links for a proof: two one-time tokens, 72 hours."""
        approval_token = await self._issue(
            PROOF_REVIEW_POLICY, proof_id, {"action": PROOF_ACTION_APPROVE}
        )
        revision_token = await self._issue(
            PROOF_REVIEW_POLICY, proof_id, {"action": PROOF_ACTION_REVISE}
        )

        if approval_token is None or revision_token is None:
            logger.error("Failed to generate proof review tokens")
            # Don't leave a half-issued pair usable
            for token in (approval_token, revision_token):
                if token is not None:
                    await self.service.revoke_token(token)
            return None

        review_url = f"{self.base_url}{PROOF_REVIEW_POLICY.path}"
        approve_link = embed_token_in_url(review_url, approval_token)
        revise_link = embed_token_in_url(review_url, revision_token)
        return ProofReviewLinks(
            approve_link=f"{approve_link}&action={PROOF_ACTION_APPROVE}",
            revise_link=f"{revise_link}&action={PROOF_ACTION_REVISE}",
            approval_token=approval_token,
            revision_token=revision_token,
        )

    async def generate_order_status_link(self, order_id: str) -> PublicLink | None:
        """Order tracking link: reusable token, 7 days."""
        return await self._single_link(ORDER_STATUS_POLICY, order_id)

    async def generate_invoice_payment_link(self, invoice_id: str) -> PublicLink | None:
        """Invoice payment link: reusable token, 30 days."""
        return await self._single_link(INVOICE_PAYMENT_POLICY, invoice_id)

    async def generate_design_access_link(self, design_id: str) -> PublicLink | None:
        """Design file link: reusable token, 30 days."""
        return await self._single_link(DESIGN_ACCESS_POLICY, design_id)
