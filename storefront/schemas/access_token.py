"""Public access token schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from storefront.models.public_access_token import ResourceType


class ProofReviewAction(str, Enum):
    """Actions a customer can take from a proof review email."""

    APPROVE = "approve"
    REVISE = "revise"


class LinkKind(str, Enum):
    """Kinds of emailed links the admin API can generate."""

    PROOF_REVIEW = "proof-review"
    ORDER_STATUS = "order-status"
    INVOICE_PAYMENT = "invoice-payment"
    DESIGN_ACCESS = "design-access"


# Admin requests / responses

class TokenIssueRequest(BaseModel):
    """Request to issue a raw public access token."""

    resource_type: ResourceType
    resource_id: str = Field(..., min_length=1, max_length=255)
    expires_in_hours: float | None = Field(None, gt=0)
    one_time_use: bool = False
    created_by: str | None = Field(None, max_length=255)


class TokenIssueResponse(BaseModel):
    """Issued token. The only response that ever carries a token value."""

    token: str
    resource_type: ResourceType
    resource_id: str
    expires_at: datetime
    one_time_use: bool


class LinkRequest(BaseModel):
    """Request to generate an emailed link for a resource."""

    resource_id: str = Field(..., min_length=1, max_length=255)
    base_url: str | None = Field(None, max_length=500)


class PublicLinkResponse(BaseModel):
    """A single customer link."""

    url: str
    token: str


class ProofReviewLinksResponse(BaseModel):
    """Approve and revise links for a proof."""

    approve_link: str
    revise_link: str
    approval_token: str
    revision_token: str


class RevocationResponse(BaseModel):
    """Revocation outcome."""

    revoked: bool


class CleanupResponse(BaseModel):
    """Cleanup sweep outcome."""

    deleted: int


class CleanupStatsResponse(BaseModel):
    """Rows eligible for cleanup right now."""

    eligible: int


# Public responses

class ResolvedResourceResponse(BaseModel):
    """The resource a valid token grants access to."""

    resource_type: ResourceType
    resource_id: str


class ProofReviewResolution(ResolvedResourceResponse):
    """Resolved proof review token plus the requested action."""

    action: ProofReviewAction
