"""Rate limiting for public token endpoints.

Public endpoints accept a bearer capability from anonymous clients, which
makes them the natural target for token guessing. Limits are IP-based since
there is no authenticated user.
"""

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from storefront.core.client_ip import get_client_ip
from storefront.core.config import settings
from storefront.core.security_events import security_events
from storefront.core.middleware import redact_token_from_url

# IP-based limiter (for unauthenticated endpoints), proxy-aware
limiter = Limiter(key_func=get_client_ip, enabled=settings.RATE_LIMIT_ENABLED)


class RateLimits:
    """
    Centralized rate limit strings.

    Format: "X/period" where period is: second, minute, hour, day
    Multiple limits can be combined: "100/minute;1000/hour"
    """

    PUBLIC_TOKEN = settings.PUBLIC_TOKEN_RATE_LIMIT
    ADMIN = "60/minute"


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Log the rejection as a security event, then return slowapi's 429."""
    security_events.log_rate_limit_exceeded(
        ip_address=get_client_ip(request),
        endpoint=redact_token_from_url(request.url.path),
        limit=str(exc.detail),
    )
    return _rate_limit_exceeded_handler(request, exc)
