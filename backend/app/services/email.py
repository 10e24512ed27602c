# backend/app/services/email.py
"""
Outgoing email over SMTP (STARTTLS).

smtplib is blocking, so delivery runs in Starlette's threadpool. With an
empty SMTP_HOST the service only logs what it would have sent, which keeps
local development and tests free of a mail server.
"""
import html as html_lib
import logging
import smtplib
import ssl
from datetime import datetime
from email.message import EmailMessage
from typing import Optional
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool

from backend.app.core.config import Settings
from backend.app.core.errors import AppError, CommonErrorCode
from backend.app.core.logging import mask_email, mask_wallet

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    def _deliver(self, msg: EmailMessage) -> None:
        ctx = ssl.create_default_context()
        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as s:
            s.starttls(context=ctx)
            if self.settings.SMTP_USER and self.settings.SMTP_PASSWORD:
                s.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            s.send_message(msg)

    async def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        if not self.enabled:
            logger.info("event=email_skipped reason=smtp_disabled to=%s subject=%r", mask_email(to), subject)
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.MAIL_FROM
        msg["To"] = to
        if text:
            msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            await run_in_threadpool(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("event=email_failed to=%s error=%s", mask_email(to), type(e).__name__)
            raise AppError(CommonErrorCode.EMAIL_DELIVERY_FAILED) from e

        logger.info("event=email_sent to=%s subject=%r", mask_email(to), subject)

    def build_verification_link(self, token: str, code: str) -> str:
        return f"{self.settings.WALLET_VERIFICATION_URL}?{urlencode({'token': token, 'code': code})}"

    async def send_wallet_verification_email(
        self,
        to: str,
        name: str,
        wallet_address: str,
        token: str,
        code: str,
        expires_at: datetime,
    ) -> None:
        link = self.build_verification_link(token, code)
        expires = expires_at.strftime("%Y-%m-%d %H:%M UTC")
        subject = "Verify your Stellar wallet"

        text = (
            f"Hi {name},\n\n"
            f"Confirm that you own the Stellar wallet {wallet_address}.\n\n"
            f"Open this link: {link}\n"
            f"or enter this code: {code}\n\n"
            f"The request expires at {expires}. If you did not ask for this, ignore this email."
        )
        html = (
            f"<p>Hi {html_lib.escape(name)},</p>"
            f"<p>Confirm that you own the Stellar wallet <code>{wallet_address}</code>.</p>"
            f'<p><a href="{link}">Verify wallet</a></p>'
            f"<p>Or enter this code: <strong>{code}</strong></p>"
            f"<p>The request expires at {expires}. If you did not ask for this, ignore this email.</p>"
        )

        logger.info(
            "event=wallet_verification_email to=%s wallet=%s",
            mask_email(to),
            mask_wallet(wallet_address),
        )
        await self.send_email(to, subject, html, text)
