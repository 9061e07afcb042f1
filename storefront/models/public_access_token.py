"""Public access token model.

Tokens grant time-boxed access to a single storefront resource (proof,
order, invoice or design) from an emailed link, without an account login.

Security Properties:
- Opaque: token is 32 random bytes, hex encoded, not a decodable JWT
- Resource-bound: token carries exactly one (resource_type, resource_id) pair
- Time-limited: absolute expiry set at issuance
- Optionally one-time-use: used_at is set by a conditional update on consumption
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.session import Base
from storefront.models.base import CreatedAtMixin

TOKEN_LENGTH = 64


class ResourceType(str, Enum):
    """Resources that can be shared through a public access token."""

    PROOF = "proof"
    ORDER = "order"
    INVOICE = "invoice"
    DESIGN = "design"


class PublicAccessToken(Base, CreatedAtMixin):
    """Capability token for public (unauthenticated) resource access.

    Rows are immutable except for used_at, which is written at most once
    and only for one-time-use tokens.
    """

    __tablename__ = "public_access_tokens"

    token: Mapped[str] = mapped_column(String(TOKEN_LENGTH), primary_key=True)

    resource_type: Mapped[str] = mapped_column(String(20), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Token lifecycle
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    one_time_use: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit trail
    created_by: Mapped[str | None] = mapped_column(String(255))
    # "metadata" is reserved on declarative classes
    token_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    __table_args__ = (
        Index("ix_public_access_tokens_resource", "resource_type", "resource_id"),
        Index("ix_public_access_tokens_expires_at", "expires_at"),
        CheckConstraint(
            "resource_type IN ('proof', 'order', 'invoice', 'design')",
            name="ck_public_access_tokens_resource_type",
        ),
    )

