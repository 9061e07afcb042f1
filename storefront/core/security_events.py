"""Structured security event logging for public access tokens.

Every token lifecycle event (issue, validate, reject, revoke, cleanup) is
written to a dedicated logger in a consistent JSON schema suitable for SIEM
ingestion:
- timestamp: ISO8601 UTC timestamp
- event_type: Hierarchical event type (e.g., security.public_token.rejected)
- severity: info, warning, error, critical
- ip_address / user_agent: Client context when known
- resource_type / resource_id: The resource the token is bound to
- details: Event-specific additional data

Rejection reasons are recorded here and nowhere else. They must never be
returned to an HTTP client.

Full token values are never logged; only an 8-character prefix.

Usage:
    from storefront.core.security_events import security_events

    security_events.log_token_rejected(token=token, reason="expired")
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Dedicated security logger - configure to send to SIEM
security_logger = logging.getLogger("security.events")

TOKEN_PREFIX_LENGTH = 8


def token_prefix(token: Any) -> str | None:
    """Reduce a token to a loggable prefix."""
    if not isinstance(token, str) or not token:
        return None
    return token[:TOKEN_PREFIX_LENGTH]


class EventSeverity(str, Enum):
    """Security event severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class SecurityEventType(str, Enum):
    """Enumeration of all security event types.

    Hierarchical naming: category.subcategory.event
    """
    # Public access token events
    PUBLIC_TOKEN_CREATED = "security.public_token.created"
    PUBLIC_TOKEN_CREATE_FAILED = "security.public_token.create_failed"
    PUBLIC_TOKEN_VALIDATED = "security.public_token.validated"
    PUBLIC_TOKEN_REJECTED = "security.public_token.rejected"
    PUBLIC_TOKEN_REVOKED = "security.public_token.revoked"
    PUBLIC_TOKEN_RESOURCE_REVOKED = "security.public_token.resource_revoked"
    PUBLIC_TOKEN_CLEANUP = "security.public_token.cleanup"

    # Admin events
    ADMIN_KEY_INVALID = "security.admin.key_invalid"

    # Rate limiting events
    RATE_LIMIT_EXCEEDED = "security.rate.limit_exceeded"


class SecurityEventLogger:
    """Structured security event logger.

    Logs security events in a consistent JSON format suitable for
    SIEM ingestion, audit trails, and incident response.
    """

    def __init__(self, logger: logging.Logger | None = None):
        """Initialize the security event logger.

        Args:
            logger: Optional custom logger. Defaults to security.events logger.
        """
        self.logger = logger or security_logger

    def _log_event(
        self,
        event_type: SecurityEventType,
        severity: EventSeverity,
        ip_address: str | None = None,
        user_agent: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Log a security event with structured data.

        Returns:
            The logged event data for testing/verification
        """
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type.value,
            "severity": severity.value,
            "ip_address": ip_address,
            "user_agent": user_agent[:500] if user_agent else None,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "details": details or {},
        }

        log_level = {
            EventSeverity.INFO: logging.INFO,
            EventSeverity.WARNING: logging.WARNING,
            EventSeverity.ERROR: logging.ERROR,
            EventSeverity.CRITICAL: logging.CRITICAL,
        }.get(severity, logging.INFO)

        self.logger.log(
            log_level,
            json.dumps(event, default=str),
            extra={"event_type": event_type.value, "is_security_event": True},
        )
        return event

    # Public access token events

    def log_token_created(
        self,
        token: str,
        resource_type: str,
        resource_id: str,
        expires_at: str,
        one_time_use: bool,
        created_by: str | None = None,
    ) -> dict[str, Any]:
        """Log public access token issuance."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_CREATED,
            severity=EventSeverity.INFO,
            resource_type=resource_type,
            resource_id=resource_id,
            details={
                "token_prefix": token_prefix(token),
                "expires_at": expires_at,
                "one_time_use": one_time_use,
                "created_by": created_by,
            },
        )

    def log_token_create_failed(
        self,
        resource_type: str,
        resource_id: str,
        error: str,
    ) -> dict[str, Any]:
        """Log a storage failure during issuance."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_CREATE_FAILED,
            severity=EventSeverity.ERROR,
            resource_type=resource_type,
            resource_id=resource_id,
            details={"error": error},
        )

    def log_token_validated(
        self,
        token: str,
        resource_type: str,
        resource_id: str,
        consumed: bool,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Log a successful validation (and consumption for one-time tokens)."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_VALIDATED,
            severity=EventSeverity.INFO,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"token_prefix": token_prefix(token), "consumed": consumed},
        )

    def log_token_rejected(
        self,
        token: Any,
        reason: str,
        expected_resource_type: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        extra_details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Log a rejected token with its internal reason."""
        details = {
            "token_prefix": token_prefix(token),
            "reason": reason,
            "expected_resource_type": expected_resource_type,
        }
        if extra_details:
            details.update(extra_details)

        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_REJECTED,
            severity=EventSeverity.WARNING,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details,
        )

    def log_token_revoked(self, token: str, deleted: int) -> dict[str, Any]:
        """Log explicit revocation of a single token."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_REVOKED,
            severity=EventSeverity.INFO,
            resource_type="public_access_token",
            details={"token_prefix": token_prefix(token), "deleted": deleted},
        )

    def log_resource_tokens_revoked(
        self,
        resource_type: str,
        resource_id: str,
        deleted: int,
    ) -> dict[str, Any]:
        """Log revocation of every token bound to a resource."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_RESOURCE_REVOKED,
            severity=EventSeverity.INFO,
            resource_type=resource_type,
            resource_id=resource_id,
            details={"deleted": deleted},
        )

    def log_tokens_cleaned(self, deleted: int) -> dict[str, Any]:
        """Log an expired-token cleanup sweep."""
        return self._log_event(
            event_type=SecurityEventType.PUBLIC_TOKEN_CLEANUP,
            severity=EventSeverity.INFO,
            resource_type="public_access_token",
            details={"deleted": deleted},
        )

    # Admin events

    def log_admin_key_invalid(
        self,
        endpoint: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Log a rejected admin API key."""
        return self._log_event(
            event_type=SecurityEventType.ADMIN_KEY_INVALID,
            severity=EventSeverity.WARNING,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"endpoint": endpoint},
        )

    # Rate limiting events

    def log_rate_limit_exceeded(
        self,
        ip_address: str,
        endpoint: str,
        limit: str | None = None,
    ) -> dict[str, Any]:
        """Log rate limit exceeded."""
        return self._log_event(
            event_type=SecurityEventType.RATE_LIMIT_EXCEEDED,
            severity=EventSeverity.WARNING,
            ip_address=ip_address,
            details={"endpoint": endpoint, "limit": limit},
        )


# Global instance for convenience
security_events = SecurityEventLogger()
