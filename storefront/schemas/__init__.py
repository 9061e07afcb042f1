"""Pydantic schemas for API validation."""

from storefront.schemas.access_token import (
    CleanupResponse,
    CleanupStatsResponse,
    LinkKind,
    LinkRequest,
    ProofReviewAction,
    ProofReviewLinksResponse,
    ProofReviewResolution,
    PublicLinkResponse,
    ResolvedResourceResponse,
    RevocationResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)
from storefront.schemas.common import HealthResponse

__all__ = [
    "CleanupResponse",
    "CleanupStatsResponse",
    "HealthResponse",
    "LinkKind",
    "LinkRequest",
    "ProofReviewAction",
    "ProofReviewLinksResponse",
    "ProofReviewResolution",
    "PublicLinkResponse",
    "ResolvedResourceResponse",
    "RevocationResponse",
    "TokenIssueRequest",
    "TokenIssueResponse",
]
