"""Security middleware for token redaction and logging protection.

Public access tokens travel as query-string values
(``/orders/track?token=...``). Anyone holding the string holds the
capability, so token values must never appear in logs, error traces, or
Referer headers sent to third parties.
"""

import logging
import re
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Matches token=<value> in a query string or a logged URL
TOKEN_QUERY_PATTERN = re.compile(r"([?&]token=)([^&\s\"'#]+)")
# Bare 64-hex values (token in a path segment or pasted into a message)
HEX_TOKEN_PATTERN = re.compile(r"\b[0-9a-fA-F]{64}\b")
TOKEN_REDACTED = "[TOKEN_REDACTED]"

PUBLIC_PATH_PREFIX = "/api/v1/public/"


def redact_token_from_url(url: str) -> str:
    """Redact token values from a URL, path, or log line.

    Args:
        url: The URL, path, or log line potentially containing ``token=...``

    Returns:
        The input with token values replaced by [TOKEN_REDACTED]
    """
    url = TOKEN_QUERY_PATTERN.sub(rf"\1{TOKEN_REDACTED}", url)
    return HEX_TOKEN_PATTERN.sub(TOKEN_REDACTED, url)


def _redact(value):
    return redact_token_from_url(value) if isinstance(value, str) else value


def is_token_bearing_request(request: Request) -> bool:
    """Check if a request carries a public access token."""
    return "token" in request.query_params or request.url.path.startswith(PUBLIC_PATH_PREFIX)


class TokenRedactionFilter(logging.Filter):
    """Logging filter that redacts token values from log records.

    uvicorn access logs include the full query string, so this filter must
    be installed on uvicorn loggers as well as the root logger.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_token_from_url(record.msg)

        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(_redact(arg) for arg in record.args)
            elif isinstance(record.args, dict):
                record.args = {k: _redact(v) for k, v in record.args.items()}

        return True


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security headers to all API responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        # X-XSS-Protection disabled - can cause vulnerabilities, CSP is preferred
        response.headers["X-XSS-Protection"] = "0"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith("/api/"):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'"
            )
            if "Cache-Control" not in response.headers:
                response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

        return response


class TokenRedactionMiddleware(BaseHTTPMiddleware):
    """Harden responses to token-bearing requests.

    - Referrer-Policy: no-referrer so the token never leaks via Referer
    - Cache-Control: no-store so shared caches never keep a token response
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        token_bearing = is_token_bearing_request(request)

        response = await call_next(request)

        if token_bearing:
            response.headers["Referrer-Policy"] = "no-referrer"
            response.headers["Cache-Control"] = "private, no-store, max-age=0"

        return response


def _add_redaction_filter(target: logging.Filterer, redaction_filter: TokenRedactionFilter) -> None:
    if not any(isinstance(f, TokenRedactionFilter) for f in target.filters):
        target.addFilter(redaction_filter)


def install_token_redaction_logging() -> None:
    """Install token redaction filter on all relevant loggers.

    Call during application startup, after logging is configured. Safe to
    call again on restart: loggers and handlers that already carry a
    TokenRedactionFilter are skipped.
    """
    redaction_filter = TokenRedactionFilter()

    root_logger = logging.getLogger()
    _add_redaction_filter(root_logger, redaction_filter)
    # Logger filters do not apply to records propagated from children,
    # so attach to handlers as well.
    for handler in root_logger.handlers:
        _add_redaction_filter(handler, redaction_filter)

    for name in [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "fastapi",
        "storefront",
        "security.events",
    ]:
        logger = logging.getLogger(name)
        _add_redaction_filter(logger, redaction_filter)
        for handler in logger.handlers:
            _add_redaction_filter(handler, redaction_filter)


def redact_exception_args(exc: Exception) -> Exception:
    """Redact token values from exception arguments."""
    if exc.args:
        exc.args = tuple(_redact(arg) for arg in exc.args)
    return exc
