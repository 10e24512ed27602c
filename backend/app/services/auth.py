# backend/app/services/auth.py
"""
Account registration, login and session (token) management.

Tokens:
- access token: short-lived JWT (security/jwt.py), returned in the body
- refresh token: opaque random string, returned as an HTTP-only cookie,
  stored server-side only as a SHA-256 hash (models/refresh_token.py)

Refresh rotation is at-most-once. Exchanging a token revokes it with a
conditional UPDATE; presenting a revoked token again is treated as theft and
revokes every token of the same login ("family").
"""
import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.config import Settings
from backend.app.core.errors import AppError, AuthErrorCode
from backend.app.core.logging import mask_email
from backend.app.db.base import as_utc, utcnow
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import User, UserRole
from backend.app.schemas.user import Auth0Profile, UserCreate
from backend.app.security import hashing, jwt

logger = logging.getLogger(__name__)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass
class LoginResult:
    user: User
    tokens: TokenPair


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    # ─────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Load a user with its two-factor relation (None if unknown)."""
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.two_factor_auth))
            .where(User.email == email.strip().lower())
        )
        return result.scalars().first()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    # ─────────────────────────────────────────────────────────────
    # Registration / login
    # ─────────────────────────────────────────────────────────────
    async def register(self, payload: UserCreate) -> User:
        email = payload.email.strip().lower()
        if await self.get_user_by_email(email):
            raise AppError(AuthErrorCode.EMAIL_TAKEN)

        user = User(
            name=payload.name.strip(),
            email=email,
            hashed_password=hashing.get_password_hash(payload.password),
            role=UserRole.USER.value,
            is_email_verified=False,
            is_wallet_verified=False,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same email
            await self.db.rollback()
            raise AppError(AuthErrorCode.EMAIL_TAKEN) from e
        await self.db.refresh(user)

        logger.info("event=user_registered user_id=%s email=%s", user.id, mask_email(email))
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Same error (and bcrypt cost) for unknown email and wrong password."""
        user = await self.get_user_by_email(email)
        if not hashing.verify_password(password, user.hashed_password if user else None):
            raise AppError(AuthErrorCode.INVALID_CREDENTIALS)
        return user

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self.authenticate(email, password)
        tokens = await self.issue_tokens(user)
        logger.info("event=login_succeeded user_id=%s", user.id)
        return LoginResult(user=user, tokens=tokens)

    async def login_with_auth0(self, profile: Auth0Profile) -> LoginResult:
        """
        Find-or-create the local user for an Auth0 identity.

        Match order: auth0_id, then email (links an existing password
        account), otherwise a new account without a local password.
        Linking by email requires Auth0 to have verified that email.
        """
        result = await self.db.execute(select(User).where(User.auth0_id == profile.sub))
        user = result.scalars().first()

        if user is None:
            user = await self.get_user_by_email(profile.email)
            if user is not None:
                if not profile.email_verified:
                    logger.warning("event=auth0_link_refused user_id=%s reason=email_unverified", user.id)
                    raise AppError(AuthErrorCode.EXTERNAL_EMAIL_UNVERIFIED)
                user.auth0_id = profile.sub
                user.is_email_verified = True
                logger.info("event=auth0_linked user_id=%s", user.id)
            else:
                email = profile.email.strip().lower()
                user = User(
                    name=(profile.name or email.split("@", 1)[0]).strip(),
                    email=email,
                    hashed_password=None,
                    auth0_id=profile.sub,
                    role=UserRole.USER.value,
                    is_email_verified=profile.email_verified,
                    is_wallet_verified=False,
                )
                self.db.add(user)
                logger.info("event=auth0_user_created email=%s", mask_email(email))

            await self.db.commit()
            await self.db.refresh(user)

        tokens = await self.issue_tokens(user)
        logger.info("event=auth0_login_succeeded user_id=%s", user.id)
        return LoginResult(user=user, tokens=tokens)

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────
    def create_access_token(self, user: User) -> str:
        return jwt.create_access_token(
            data={"sub": str(user.id), "role": user.role},
            secret_key=self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM,
            expires_delta=timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    async def issue_tokens(self, user: User, family_id: Optional[str] = None) -> TokenPair:
        """Mint an access token and persist a new refresh token (commits)."""
        refresh_token = secrets.token_urlsafe(48)
        self.db.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_refresh_token(refresh_token),
                family_id=family_id or str(uuid.uuid4()),
                expires_at=utcnow() + timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS),
            )
        )
        await self.db.commit()

        return TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_expires_in,
        )

    async def _revoke_family(self, family_id: str) -> None:
        await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.family_id == family_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        await self.db.commit()

    async def refresh(self, refresh_token: str) -> TokenPair:
        token_hash = hash_refresh_token(refresh_token)
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
        stored = result.scalars().first()

        if stored is None:
            raise AppError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        if stored.revoked_at is not None:
            logger.warning("event=refresh_token_reused user_id=%s family=%s", stored.user_id, stored.family_id)
            await self._revoke_family(stored.family_id)
            raise AppError(AuthErrorCode.REFRESH_TOKEN_REUSED)

        if as_utc(stored.expires_at) <= utcnow():
            raise AppError(AuthErrorCode.REFRESH_TOKEN_EXPIRED)

        # Only one concurrent exchange of the same token can flip revoked_at
        revoked = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == stored.id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        if revoked.rowcount != 1:
            await self.db.rollback()
            logger.warning("event=refresh_token_race user_id=%s family=%s", stored.user_id, stored.family_id)
            await self._revoke_family(stored.family_id)
            raise AppError(AuthErrorCode.REFRESH_TOKEN_REUSED)

        user = await self.get_user_by_id(stored.user_id)
        if user is None:
            await self.db.commit()
            raise AppError(AuthErrorCode.INVALID_REFRESH_TOKEN)

        tokens = await self.issue_tokens(user, family_id=stored.family_id)
        logger.info("event=refresh_rotated user_id=%s", user.id)
        return tokens

    async def logout(self, refresh_token: str) -> None:
        """Revoke the token if it is known and active; otherwise do nothing."""
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token_hash == hash_refresh_token(refresh_token),
                RefreshToken.revoked_at.is_(None),
            )
            .values(revoked_at=utcnow())
        )
        await self.db.commit()
        if result.rowcount:
            logger.info("event=logout revoked=1")
