# backend/app/services/wallet_verification.py
"""
Stellar wallet proof-of-ownership flow.

    initiate_verification(user_id, address)
        → older pending rows of the user become "expired"
        → new "pending" row (token + 6-digit code, expires in 24h)
        → one email with link and code

    verify_wallet(token, code)
        → row must be pending, unexpired, code must match
        → address must exist on the Stellar network (Horizon)
        → pending → verified (conditional UPDATE, so only one caller wins)
        → user.wallet_address / is_wallet_verified updated
"""
import logging
import secrets
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings
from backend.app.core.errors import AppError, CommonErrorCode, WalletErrorCode
from backend.app.core.logging import mask_wallet
from backend.app.db.base import as_utc, utcnow
from backend.app.models.user import User
from backend.app.models.wallet_verification import VerificationStatus, WalletVerification
from backend.app.security import stellar
from backend.app.services.email import EmailService

logger = logging.getLogger(__name__)


def generate_verification_token() -> str:
    return secrets.token_urlsafe(32)


def generate_verification_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


class WalletVerificationService:
    def __init__(self, db: AsyncSession, email_service: EmailService, settings: Settings):
        self.db = db
        self.email_service = email_service
        self.settings = settings

    async def initiate_verification(self, user_id: int, wallet_address: str) -> WalletVerification:
        wallet_address = (wallet_address or "").strip()
        if not stellar.is_valid_stellar_address(wallet_address):
            raise AppError(WalletErrorCode.INVALID_WALLET_ADDRESS)

        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalars().first()
        if user is None:
            raise AppError(CommonErrorCode.USER_NOT_FOUND)

        # Only the newest link/code pair of a user stays actionable
        await self.db.execute(
            update(WalletVerification)
            .where(
                WalletVerification.user_id == user_id,
                WalletVerification.status == VerificationStatus.PENDING.value,
            )
            .values(status=VerificationStatus.EXPIRED.value)
        )

        verification = WalletVerification(
            user_id=user_id,
            wallet_address=wallet_address,
            verification_token=generate_verification_token(),
            verification_code=generate_verification_code(),
            expires_at=utcnow() + timedelta(hours=self.settings.WALLET_VERIFICATION_EXPIRE_HOURS),
            status=VerificationStatus.PENDING.value,
        )
        self.db.add(verification)
        await self.db.commit()

        logger.info(
            "event=wallet_verification_initiated user_id=%s wallet=%s",
            user_id,
            mask_wallet(wallet_address),
        )

        await self.email_service.send_wallet_verification_email(
            to=user.email,
            name=user.name,
            wallet_address=wallet_address,
            token=verification.verification_token,
            code=verification.verification_code,
            expires_at=verification.expires_at,
        )
        return verification

    async def verify_wallet(self, token: str, code: str) -> User:
        result = await self.db.execute(
            select(WalletVerification).where(WalletVerification.verification_token == token)
        )
        verification = result.scalars().first()

        if verification is None or verification.status != VerificationStatus.PENDING.value:
            raise AppError(WalletErrorCode.VERIFICATION_NOT_FOUND)

        if as_utc(verification.expires_at) <= utcnow():
            verification.status = VerificationStatus.EXPIRED.value
            await self.db.commit()
            raise AppError(WalletErrorCode.VERIFICATION_NOT_FOUND)

        if not secrets.compare_digest(verification.verification_code, (code or "").strip()):
            logger.info("event=wallet_code_rejected user_id=%s", verification.user_id)
            raise AppError(WalletErrorCode.INVALID_VERIFICATION_CODE)

        exists = await stellar.check_stellar_wallet_exists(
            verification.wallet_address,
            horizon_url=self.settings.STELLAR_HORIZON_URL,
            timeout=self.settings.STELLAR_REQUEST_TIMEOUT,
        )
        if not exists:
            raise AppError(WalletErrorCode.WALLET_NOT_FOUND)

        consumed = await self.db.execute(
            update(WalletVerification)
            .where(
                WalletVerification.id == verification.id,
                WalletVerification.status == VerificationStatus.PENDING.value,
            )
            .values(status=VerificationStatus.VERIFIED.value)
        )
        if consumed.rowcount != 1:
            await self.db.rollback()
            raise AppError(WalletErrorCode.VERIFICATION_NOT_FOUND)

        result = await self.db.execute(select(User).where(User.id == verification.user_id))
        user = result.scalars().first()
        if user is None:
            await self.db.rollback()
            raise AppError(CommonErrorCode.USER_NOT_FOUND)

        user.wallet_address = verification.wallet_address
        user.is_wallet_verified = True
        await self.db.commit()

        logger.info(
            "event=wallet_verified user_id=%s wallet=%s",
            user.id,
            mask_wallet(verification.wallet_address),
        )
        return user
