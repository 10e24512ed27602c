import io
import logging
import sys
from datetime import datetime, timezone

import pytest
from starlette.requests import Request

from backend.app.api.rate_limit import RateLimitExceeded, RateLimiter, get_client_ip
from backend.app.core.config import Settings
from backend.app.core.errors import AppError, AuthErrorCode, CommonErrorCode, WalletErrorCode
from backend.app.core.logging import PIIScrubbingFilter, mask_email, mask_wallet, scrub
from backend.app.services import email as email_module
from backend.app.services.email import EmailService


class TestSettings:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
            ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
            ("postgresql+asyncpg://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
            ("sqlite:///./x.db", "sqlite+aiosqlite:///./x.db"),
        ],
    )
    def test_database_url_is_normalized(self, url, expected):
        assert Settings(_env_file=None, DATABASE_URL=url).DATABASE_URL == expected

    def test_production_flag_and_cookie_age(self):
        settings = Settings(_env_file=None, ENVIRONMENT="Production")

        assert settings.is_production
        assert settings.refresh_cookie_max_age == 7 * 24 * 60 * 60

    def test_cors_origins_never_default_to_wildcard(self):
        assert Settings(_env_file=None, CORS_ORIGINS="  ").BACKEND_CORS_ORIGINS == []
        assert Settings(_env_file=None, CORS_ORIGINS="http://a, http://b,").BACKEND_CORS_ORIGINS == [
            "http://a",
            "http://b",
        ]


class TestErrors:
    def test_app_error_carries_kind(self):
        error = AppError(WalletErrorCode.INVALID_WALLET_ADDRESS)

        assert error.status_code == 400
        assert error.code == "invalid_wallet_address"
        assert error.to_dict() == {"message": "Invalid Stellar wallet address.", "code": "invalid_wallet_address"}

    def test_message_override(self):
        error = AppError(AuthErrorCode.INVALID_CREDENTIALS, "nope")

        assert str(error) == "nope"
        assert error.status_code == 401

    def test_codes_are_unique(self):
        kinds = list(CommonErrorCode) + list(AuthErrorCode) + list(WalletErrorCode)
        codes = [kind.code for kind in kinds]
        assert len(codes) == len(set(codes))


class TestLoggingScrubber:
    def test_mask_email(self):
        assert mask_email("alice@example.com") == "a***@e***"
        assert mask_email("") == ""

    def test_mask_wallet(self):
        assert mask_wallet("GAAZI4TCR3TY5OJHCTJC2A4QSY6CJWJH5IAJTGKIN2ER7LBNVKOCCWN7") == "GAAZ…CWN7"

    def test_scrub_masks_emails_and_tokens(self):
        text = scrub("login attempt for alice@example.com with 4f1c2d3e4f1c2d3e4f1c2d3e4f1c2d3e4f1c")

        assert "alice@example.com" not in text
        assert "a***@e***" in text
        assert "[REDACTED]" in text

    def test_filter_rewrites_record(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "user=%s", ("bob@example.org",), None)

        assert PIIScrubbingFilter().filter(record)
        assert record.getMessage() == "user=b***@e***"

    def test_filter_scrubs_traceback_text(self):
        try:
            raise RuntimeError("INSERT failed parameters: ('alice@example.com', 'x')")
        except RuntimeError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "event=register_failed", None, sys.exc_info()
            )

        assert PIIScrubbingFilter().filter(record)
        output = logging.Formatter("%(message)s").format(record)

        assert "RuntimeError: INSERT failed" in output
        assert "alice@example.com" not in output
        assert "a***@e***" in output

    def test_logger_exception_is_scrubbed(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.addFilter(PIIScrubbingFilter())
        logger = logging.getLogger("tests.scrubbing")
        logger.addHandler(handler)
        try:
            try:
                raise ValueError("duplicate key bob@example.org")
            except ValueError:
                logger.exception("event=login_failed")
        finally:
            logger.removeHandler(handler)

        assert "bob@example.org" not in stream.getvalue()
        assert "b***@e***" in stream.getvalue()


class TestRateLimiter:
    def test_blocks_after_limit_per_client(self):
        limiter = RateLimiter("2/15 minutes", namespace="test")

        limiter.check("1.1.1.1")
        limiter.check("1.1.1.1")
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("1.1.1.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["X-RateLimit-Remaining"] == "0"
        # other clients have their own window
        limiter.check("2.2.2.2")


def make_request(forwarded_for=None, peer="203.0.113.9"):
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    return Request({"type": "http", "headers": headers, "client": (peer, 40000)})


class TestClientIp:
    def test_forwarded_for_is_ignored_without_trusted_proxies(self):
        assert get_client_ip(make_request("1.2.3.4")) == "203.0.113.9"

    def test_uses_entry_appended_by_trusted_proxy(self):
        request = make_request("6.6.6.6, 1.2.3.4")

        assert get_client_ip(request, trusted_hops=1) == "1.2.3.4"
        assert get_client_ip(request, trusted_hops=2) == "6.6.6.6"

    def test_short_header_falls_back_to_peer(self):
        assert get_client_ip(make_request("1.2.3.4"), trusted_hops=2) == "203.0.113.9"
        assert get_client_ip(make_request(), trusted_hops=1) == "203.0.113.9"


class TestEmailService:
    async def test_disabled_without_smtp_host(self, settings, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("SMTP must not be used")

        monkeypatch.setattr(email_module.smtplib, "SMTP", fail)

        await EmailService(settings).send_email("a@example.com", "subject", "<p>hi</p>")

    async def test_wallet_email_contains_link_and_code(self, settings, monkeypatch):
        sent = []

        class FakeSMTP:
            def __init__(self, host, port, timeout):
                assert (host, port) == ("smtp.example.com", 587)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self, context):
                pass

            def login(self, user, password):
                pass

            def send_message(self, msg):
                sent.append(msg)

        monkeypatch.setattr(email_module.smtplib, "SMTP", FakeSMTP)
        service = EmailService(settings.model_copy(update={"SMTP_HOST": "smtp.example.com"}))

        await service.send_wallet_verification_email(
            to="alice@example.com",
            name="Alice <script>",
            wallet_address="GAAZI4TCR3TY5OJHCTJC2A4QSY6CJWJH5IAJTGKIN2ER7LBNVKOCCWN7",
            token="tok123",
            code="654321",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )

        (msg,) = sent
        assert msg["To"] == "alice@example.com"
        body = msg.get_body(preferencelist=("plain",)).get_content()
        assert "654321" in body
        assert "token=tok123&code=654321" in body
        html = msg.get_body(preferencelist=("html",)).get_content()
        assert "&lt;script&gt;" in html
