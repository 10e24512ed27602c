# backend/app/core/logging.py
"""
Logging setup and PII scrubbing.

Log lines are plain `event=<name> key=value` messages. Anything that looks
like an email address or a long opaque token is masked by PIIScrubbingFilter
before a record is formatted, so credentials-adjacent data never reaches the
log sink even if a caller forgets to mask it.
"""
import logging
import re
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

EMAIL_RE = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9-])[A-Za-z0-9.-]*\.[A-Za-z]{2,}")
# JWTs, refresh tokens, verification tokens
TOKEN_RE = re.compile(r"\b[A-Za-z0-9_\-]{32,}(?:\.[A-Za-z0-9_\-]+){0,2}\b")


def mask_email(email: Optional[str]) -> str:
    """u***@e***"""
    if not email:
        return ""
    if "@" not in email:
        return (email[:1] + "***") if email else ""
    user, domain = email.split("@", 1)
    return f"{user[:1]}***@{domain[:1]}***"


def mask_wallet(address: Optional[str]) -> str:
    if not address:
        return ""
    if len(address) <= 8:
        return address
    return f"{address[:4]}…{address[-4:]}"


def scrub(text: str) -> str:
    text = EMAIL_RE.sub(lambda m: f"{m.group(1)}***@{m.group(2)}***", text)
    return TOKEN_RE.sub("[REDACTED]", text)


class PIIScrubbingFilter(logging.Filter):
    """
    Rewrites the final message of every record with emails and tokens masked.

    Tracebacks are rendered into `exc_text` here and scrubbed too; Formatter
    reuses a populated `exc_text` instead of formatting `exc_info` again.
    Database errors carry bound parameters, emails included.
    """

    _formatter = logging.Formatter()

    def filter(self, record: logging.LogRecord) -> bool:
        if record.exc_info and not record.exc_text:
            record.exc_text = self._formatter.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = scrub(record.exc_text)
        if record.stack_info:
            record.stack_info = scrub(record.stack_info)

        try:
            message = record.getMessage()
        except Exception:  # malformed args: let the handler report it
            return True
        record.msg = scrub(message)
        record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once.

    Safe to call repeatedly (e.g. one app per test): the scrubbing
    handler is only installed the first time.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in root.handlers:
        if getattr(handler, "_pii_scrubbed", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(PIIScrubbingFilter())
    handler._pii_scrubbed = True
    root.addHandler(handler)
