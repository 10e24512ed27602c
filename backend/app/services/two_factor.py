# backend/app/services/two_factor.py
"""
Two-factor (TOTP) validation and enrollment.

Enrollment is two-step: setup stores a fresh secret with is_enabled=False
and returns it (plus a QR code); enable flips the flag once the user proves
the authenticator produces valid codes. Login only asks for a token when
the factor is enabled.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings
from backend.app.core.errors import AppError, TwoFactorErrorCode
from backend.app.models.two_factor_auth import TwoFactorAuth
from backend.app.models.user import User
from backend.app.schemas.two_factor import TwoFactorSetupResponse
from backend.app.security import totp

logger = logging.getLogger(__name__)


async def get_two_factor_auth(db: AsyncSession, user_id: int) -> Optional[TwoFactorAuth]:
    result = await db.execute(select(TwoFactorAuth).where(TwoFactorAuth.user_id == user_id))
    return result.scalars().first()


async def validate_two_factor_authentication(db: AsyncSession, user_id: int, token: str) -> None:
    """
    Check a one-time token against the user's enabled factor.

    Raises:
        AppError(TwoFactorErrorCode.NOT_ENABLED): no factor, or not enabled
        AppError(TwoFactorErrorCode.INVALID_TOKEN): wrong, malformed or stale token

    Has no side effects.
    """
    two_factor = await get_two_factor_auth(db, user_id)
    if two_factor is None or not two_factor.is_enabled:
        raise AppError(TwoFactorErrorCode.NOT_ENABLED)

    if not totp.verify_totp(two_factor.secret, token):
        logger.info("event=two_factor_rejected user_id=%s", user_id)
        raise AppError(TwoFactorErrorCode.INVALID_TOKEN)


class TwoFactorService:
    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def setup(self, user: User) -> TwoFactorSetupResponse:
        two_factor = await get_two_factor_auth(self.db, user.id)
        if two_factor is not None and two_factor.is_enabled:
            raise AppError(TwoFactorErrorCode.ALREADY_ENABLED)

        secret = totp.generate_totp_secret()
        if two_factor is None:
            two_factor = TwoFactorAuth(user_id=user.id, secret=secret, is_enabled=False)
            self.db.add(two_factor)
        else:
            # Restarting setup invalidates the previously shown secret
            two_factor.secret = secret
        await self.db.commit()

        uri = totp.get_totp_uri(secret, user.email, self.settings.TOTP_ISSUER)
        logger.info("event=two_factor_setup_started user_id=%s", user.id)
        return TwoFactorSetupResponse(
            secret=secret,
            otpauth_url=uri,
            qr_code=totp.generate_qr_code_base64(uri),
        )

    async def enable(self, user: User, token: str) -> None:
        two_factor = await get_two_factor_auth(self.db, user.id)
        if two_factor is None:
            raise AppError(TwoFactorErrorCode.SETUP_REQUIRED)
        if two_factor.is_enabled:
            raise AppError(TwoFactorErrorCode.ALREADY_ENABLED)
        if not totp.verify_totp(two_factor.secret, token):
            raise AppError(TwoFactorErrorCode.INVALID_TOKEN)

        two_factor.is_enabled = True
        await self.db.commit()
        logger.info("event=two_factor_enabled user_id=%s", user.id)

    async def disable(self, user: User, token: str) -> None:
        await validate_two_factor_authentication(self.db, user.id, token)

        two_factor = await get_two_factor_auth(self.db, user.id)
        two_factor.is_enabled = False
        await self.db.commit()
        logger.info("event=two_factor_disabled user_id=%s", user.id)
