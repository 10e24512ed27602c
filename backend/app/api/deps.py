# backend/app/api/deps.py
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.config import Settings
from backend.app.core.errors import AppError, CommonErrorCode
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.user import Auth0Profile, TokenPayload
from backend.app.security.jwt import decode_access_token
from backend.app.services.auth import AuthService
from backend.app.services.email import EmailService
from backend.app.services.two_factor import TwoFactorService
from backend.app.services.wallet_verification import WalletVerificationService

logger = logging.getLogger(__name__)

reusable_oauth2 = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings_dep),
) -> AuthService:
    return AuthService(db, settings)


def get_email_service(settings: Settings = Depends(get_settings_dep)) -> EmailService:
    return EmailService(settings)


def get_two_factor_service(
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings_dep),
) -> TwoFactorService:
    return TwoFactorService(db, settings)


def get_wallet_verification_service(
        db: AsyncSession = Depends(get_db),
        email_service: EmailService = Depends(get_email_service),
        settings: Settings = Depends(get_settings_dep),
) -> WalletVerificationService:
    return WalletVerificationService(db, email_service, settings)


async def get_current_user(
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings_dep),
        token: Optional[str] = Depends(reusable_oauth2),
) -> User:
    if not token:
        raise AppError(CommonErrorCode.NOT_AUTHENTICATED)
    try:
        payload = decode_access_token(token, settings.SECRET_KEY, settings.ALGORITHM)
        token_data = TokenPayload(**payload)
        user_id = int(token_data.sub)
    except (JWTError, ValidationError, TypeError, ValueError):
        raise AppError(CommonErrorCode.NOT_AUTHENTICATED)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()

    if not user:
        raise AppError(CommonErrorCode.NOT_AUTHENTICATED)

    return user


def get_auth0_profile(
        request: Request,
        settings: Settings = Depends(get_settings_dep),
) -> Optional[Auth0Profile]:
    """
    Identity asserted by Auth0 for the callback request, or None.

    An upstream middleware may already have put a verified profile on
    request.state.auth0_profile. Otherwise the `id_token` query parameter
    is verified as an HS256 token signed with the Auth0 client secret.
    """
    profile = getattr(request.state, "auth0_profile", None)
    if profile is not None:
        return profile if isinstance(profile, Auth0Profile) else Auth0Profile.model_validate(profile)

    id_token = request.query_params.get("id_token")
    if not id_token or not settings.AUTH0_CLIENT_SECRET:
        return None

    try:
        claims = jwt.decode(
            id_token,
            settings.AUTH0_CLIENT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH0_CLIENT_ID or None,
            issuer=settings.auth0_issuer or None,
        )
        return Auth0Profile.model_validate(claims)
    except (JWTError, ValidationError) as e:
        logger.info("event=auth0_assertion_rejected error=%s", type(e).__name__)
        return None
