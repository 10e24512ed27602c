# backend/app/models/user.py
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.base import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    # NULL for accounts created from an Auth0 profile: they cannot use password login
    hashed_password = Column(String(255), nullable=True)

    # Auth0 "sub" claim, e.g. "auth0|64f..." or "google-oauth2|1034..."
    auth0_id = Column(String(255), unique=True, index=True, nullable=True)

    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    is_email_verified = Column(Boolean, nullable=False, default=False)
    is_wallet_verified = Column(Boolean, nullable=False, default=False)
    # Stellar public key (G...), set only after a completed wallet verification
    wallet_address = Column(String(56), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    two_factor_auth = relationship(
        "TwoFactorAuth",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
