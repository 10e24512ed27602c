# backend/app/models/wallet_verification.py
"""
One proof-of-ownership attempt binding a Stellar address to a user.

Lifecycle: pending → verified, or pending → expired (past expires_at, or
superseded by a newer initiation for the same user). Only pending rows
can be confirmed; lookup is by verification_token.
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.app.db.base import Base


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"


class WalletVerification(Base):
    __tablename__ = "wallet_verifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    wallet_address = Column(String(56), nullable=False)

    # Link capability (URL-safe) and the short code typed by the user
    verification_token = Column(String(128), unique=True, index=True, nullable=False)
    verification_code = Column(String(6), nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, default=VerificationStatus.PENDING.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    user = relationship("User")
