"""Public access token service.

Issues, validates, revokes and cleans up capability tokens that grant
time-boxed, resource-scoped, optionally single-use access to a storefront
resource from an emailed link.

Security Model:
- Tokens are 32-byte (64 hex char) values from the secrets CSPRNG
- Tokens are locked to one (resource_type, resource_id) pair
- Tokens expire and may be one-time-use
- One-time tokens are consumed by a single conditional write
  (used_at IS NULL predicate), never read-then-write
- Every validation failure returns the same generic result; the specific
  reason goes to the security event log only
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from storefront.core.config import settings
from storefront.core.security_events import SecurityEventLogger, security_events
from storefront.integrations.interfaces.base import (
    AccessTokenRecord,
    AccessTokenStore,
    TokenStoreError,
)
from storefront.models.base import utc_now
from storefront.models.public_access_token import TOKEN_LENGTH, ResourceType

logger = logging.getLogger(__name__)

TOKEN_BYTES = TOKEN_LENGTH // 2

# Outward error strings. Never add detail to these.
GENERIC_NOT_FOUND = "Not found"
GENERIC_CREATE_FAILED = "Failed to create access token"


class RejectionReason(str, Enum):
    """Internal reasons a token was refused. Logged, never returned."""

    MALFORMED = "malformed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    RESOURCE_TYPE_MISMATCH = "resource_type_mismatch"
    CONSUME_RACE_LOST = "consume_race_lost"
    STORAGE_ERROR = "storage_error"


@dataclass
class TokenIssueResult:
    """Outcome of issuing a token.

    The plaintext token is only ever available here.
    """

    success: bool
    token: str | None = None
    expires_at: datetime | None = None
    error: str | None = None


@dataclass
class TokenValidationResult:
    """Outcome of validating a token against an expected resource type."""

    success: bool
    resource_id: str | None = None
    resource_type: ResourceType | None = None
    error: str | None = None
    # Issuer-supplied metadata of the validated token (empty on failure)
    metadata: dict[str, Any] = field(default_factory=dict)


def generate_token() -> str:
    """Generate a cryptographically secure token: 64 hex characters (32 bytes)."""
    return secrets.token_hex(TOKEN_BYTES)


class PublicAccessTokenService:
    """Token lifecycle operations over an injected AccessTokenStore.

    Args:
        store: Persistence backend with conditional-update support
        clock: Returns the current aware UTC datetime; injectable for tests
        events: Security event logger for internal diagnostics
    """

    def __init__(
        self,
        store: AccessTokenStore,
        clock: Callable[[], datetime] = utc_now,
        events: SecurityEventLogger | None = None,
    ):
        self.store = store
        self.clock = clock
        self.events = events or security_events

    async def create_token(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        expires_in_hours: float | None = None,
        one_time_use: bool = False,
        created_by: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TokenIssueResult:
        """
        Create and store a public access token.

        Args:
            resource_type: proof, order, invoice or design
            resource_id: Identifier of the protected resource
            expires_in_hours: Lifetime; unset or 0 uses the configured default
                (48h). Negative values produce an already-expired token.
            one_time_use: Consume the token on first successful validation
            created_by: Provenance label for auditing
            metadata: Extra issuer data stored with the token and returned on
                successful validation. createdAt is always set.

        Returns:
            TokenIssueResult carrying the token on success. Storage failures
            return a generic failure instead of raising.

        Raises:
            ValueError: Unknown resource_type or empty resource_id
        """
        resource_type = ResourceType(resource_type)
        if not resource_id:
            raise ValueError("resource_id must be a non-empty string")

        hours = expires_in_hours or settings.PUBLIC_TOKEN_DEFAULT_EXPIRY_HOURS
        now = self.clock()
        expires_at = now + timedelta(hours=hours)
        token = generate_token()

        record = AccessTokenRecord(
            token=token,
            resource_type=resource_type.value,
            resource_id=str(resource_id),
            expires_at=expires_at,
            one_time_use=one_time_use,
            created_by=created_by,
            metadata={**(metadata or {}), "createdAt": now.isoformat()},
            created_at=now,
        )

        try:
            await self.store.insert(record)
        except TokenStoreError as e:
            logger.error(f"Error creating public access token: {e}")
            self.events.log_token_create_failed(
                resource_type=resource_type.value,
                resource_id=str(resource_id),
                error=str(e),
            )
            return TokenIssueResult(success=False, error=GENERIC_CREATE_FAILED)

        self.events.log_token_created(
            token=token,
            resource_type=resource_type.value,
            resource_id=str(resource_id),
            expires_at=expires_at.isoformat(),
            one_time_use=one_time_use,
            created_by=created_by,
        )

        return TokenIssueResult(success=True, token=token, expires_at=expires_at)

    async def validate_token(
        self,
        token: str,
        expected_resource_type: ResourceType | str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenValidationResult:
        """
        Validate a token and, for one-time tokens, consume it.

        Every failure returns TokenValidationResult(success=False,
        error="Not found"). Callers must not try to tell failures apart.
        """
        expected = ResourceType(expected_resource_type)

        def reject(reason: RejectionReason, record: AccessTokenRecord | None = None, **extra):
            self.events.log_token_rejected(
                token=token,
                reason=reason.value,
                expected_resource_type=expected.value,
                resource_type=record.resource_type if record else None,
                resource_id=record.resource_id if record else None,
                ip_address=ip_address,
                user_agent=user_agent,
                extra_details=extra or None,
            )
            return TokenValidationResult(success=False, error=GENERIC_NOT_FOUND)

        # Cheap format filter before touching storage
        if not isinstance(token, str) or len(token) != TOKEN_LENGTH:
            return reject(RejectionReason.MALFORMED)

        try:
            record = await self.store.get(token)
        except TokenStoreError as e:
            logger.error(f"Public token lookup failed: {e}")
            return reject(RejectionReason.STORAGE_ERROR)

        if record is None:
            return reject(RejectionReason.NOT_FOUND)

        now = self.clock()

        if now >= record.expires_at:
            return reject(
                RejectionReason.EXPIRED, record, expires_at=record.expires_at.isoformat()
            )

        if record.one_time_use and record.used_at is not None:
            return reject(
                RejectionReason.ALREADY_USED, record, used_at=record.used_at.isoformat()
            )

        if record.resource_type != expected.value:
            return reject(RejectionReason.RESOURCE_TYPE_MISMATCH, record)

        if record.one_time_use:
            # Single conditional write; a concurrent consumer that got there
            # first leaves zero rows to update and this request loses.
            try:
                consumed = await self.store.mark_used(token, now)
            except TokenStoreError as e:
                logger.error(f"Error marking public token as used: {e}")
                return reject(RejectionReason.STORAGE_ERROR, record)

            if not consumed:
                return reject(RejectionReason.CONSUME_RACE_LOST, record)

        self.events.log_token_validated(
            token=token,
            resource_type=record.resource_type,
            resource_id=record.resource_id,
            consumed=record.one_time_use,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return TokenValidationResult(
            success=True,
            resource_id=record.resource_id,
            resource_type=ResourceType(record.resource_type),
            metadata=record.metadata,
        )

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke a single token before expiry.

        Idempotent: revoking an unknown token succeeds. Returns False only
        when the store fails.
        """
        try:
            deleted = await self.store.delete(token)
        except TokenStoreError as e:
            logger.error(f"Error revoking public access token: {e}")
            return False

        self.events.log_token_revoked(token=token, deleted=deleted)
        return True

    async def revoke_resource_tokens(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
    ) -> bool:
        """
        Revoke every token bound to a resource.

        Call this when the resource is deleted or shared access is withdrawn;
        validation does not re-check that the resource still exists.
        """
        resource_type = ResourceType(resource_type)
        try:
            deleted = await self.store.delete_for_resource(resource_type.value, str(resource_id))
        except TokenStoreError as e:
            logger.error(f"Error revoking resource tokens: {e}")
            return False

        self.events.log_resource_tokens_revoked(
            resource_type=resource_type.value,
            resource_id=str(resource_id),
            deleted=deleted,
        )
        return True

    async def cleanup_expired_tokens(self) -> int:
        """
        Delete tokens that are both expired and already used.

        Expired tokens that were never used are kept.

        Returns:
            Number of rows removed (0 if the store failed; the failure is logged)
        """
        try:
            deleted = await self.store.delete_expired_used(self.clock())
        except TokenStoreError as e:
            logger.error(f"Error cleaning up expired tokens: {e}")
            return 0

        self.events.log_tokens_cleaned(deleted=deleted)
        return deleted

    async def count_cleanup_candidates(self) -> int:
        """Count the rows cleanup_expired_tokens would delete right now."""
        return await self.store.count_expired_used(self.clock())
