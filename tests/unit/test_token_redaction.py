"""Unit tests for token redaction middleware and logging filters.

These tests verify that public access tokens in link URLs and admin paths
are redacted from logs and error messages.
"""

import logging

import pytest

from storefront.core.middleware import (
    TOKEN_REDACTED,
    TokenRedactionFilter,
    install_token_redaction_logging,
    redact_exception_args,
    redact_token_from_url,
)

TOKEN = "3f" * 32


class TestRedactTokenFromUrl:
    """Tests for the redact_token_from_url function."""

    def test_redacts_token_query_value(self):
        """Should redact the token query parameter."""
        url = f"/api/v1/public/order?token={TOKEN}"
        assert redact_token_from_url(url) == f"/api/v1/public/order?token={TOKEN_REDACTED}"

    def test_preserves_other_query_params(self):
        """Should leave parameters after the token intact."""
        url = f"https://shop.test/proofs/review?token={TOKEN}&action=approve"
        result = redact_token_from_url(url)
        assert result == f"https://shop.test/proofs/review?token={TOKEN_REDACTED}&action=approve"

    def test_redacts_token_after_other_params(self):
        url = f"/invoices/pay?ref=email&token={TOKEN}"
        assert redact_token_from_url(url) == f"/invoices/pay?ref=email&token={TOKEN_REDACTED}"

    def test_redacts_malformed_token_values(self):
        """Guessed or truncated values are redacted too."""
        assert TOKEN_REDACTED in redact_token_from_url("/api/v1/public/order?token=abc")

    def test_redacts_token_in_path_segment(self):
        """Admin revocation puts the token in the path."""
        path = f"/api/v1/access-tokens/{TOKEN}"
        assert redact_token_from_url(path) == f"/api/v1/access-tokens/{TOKEN_REDACTED}"

    def test_redacts_token_inside_log_line(self):
        line = f'127.0.0.1 - "DELETE /api/v1/access-tokens/{TOKEN} HTTP/1.1" 200'
        result = redact_token_from_url(line)
        assert TOKEN not in result
        assert TOKEN_REDACTED in result

    def test_preserves_urls_without_tokens(self):
        """Should not modify URLs that carry no token."""
        urls = [
            "/api/v1/access-tokens/cleanup/stats",
            "/api/v1/public/order",
            "/health",
            "/",
            "",
        ]
        for url in urls:
            assert redact_token_from_url(url) == url


class TestTokenRedactionFilter:
    """Tests for the TokenRedactionFilter logging filter."""

    def _record(self, msg, args=None):
        return logging.LogRecord(
            name="uvicorn.access",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg=msg,
            args=args,
            exc_info=None,
        )

    def test_redacts_message(self):
        record = self._record(f"GET /api/v1/public/order?token={TOKEN}")
        assert TokenRedactionFilter().filter(record) is True
        assert TOKEN not in record.msg

    def test_redacts_tuple_args(self):
        """uvicorn passes the request line as a format arg."""
        record = self._record(
            '%s - "%s %s HTTP/%s" %d',
            ("127.0.0.1", "GET", f"/api/v1/public/order?token={TOKEN}", "1.1", 200),
        )
        TokenRedactionFilter().filter(record)

        assert TOKEN not in record.getMessage()
        assert record.args[4] == 200

    def test_redacts_dict_args(self):
        record = self._record("%(path)s", ({"path": f"/x?token={TOKEN}"},))
        TokenRedactionFilter().filter(record)
        assert TOKEN not in record.getMessage()


class TestRedactExceptionArgs:
    """Tests for redact_exception_args."""

    def test_redacts_string_args(self):
        exc = ValueError(f"bad request /api/v1/public/order?token={TOKEN}", 42)
        redacted = redact_exception_args(exc)

        assert redacted is exc
        assert TOKEN not in str(exc)
        assert exc.args[1] == 42


class TestInstallTokenRedactionLogging:
    """Tests for install_token_redaction_logging."""

    LOGGER_NAMES = ["", "uvicorn.access", "security.events"]

    @pytest.fixture(autouse=True)
    def restore_filters(self):
        saved = {name: list(logging.getLogger(name).filters) for name in self.LOGGER_NAMES}
        yield
        for name, filters in saved.items():
            logging.getLogger(name).filters = filters

    def test_repeated_install_adds_one_filter(self):
        """Restarting the app does not stack filters."""
        install_token_redaction_logging()
        install_token_redaction_logging()

        for name in self.LOGGER_NAMES:
            filters = logging.getLogger(name).filters
            assert sum(isinstance(f, TokenRedactionFilter) for f in filters) == 1

    def test_repeated_install_adds_one_handler_filter(self):
        handler = logging.StreamHandler()
        logger = logging.getLogger("uvicorn.access")
        logger.addHandler(handler)
        try:
            install_token_redaction_logging()
            install_token_redaction_logging()
            assert sum(isinstance(f, TokenRedactionFilter) for f in handler.filters) == 1
        finally:
            logger.removeHandler(handler)
