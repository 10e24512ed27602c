# backend/app/models/refresh_token.py
"""
Server-side state for refresh tokens.

Only the SHA-256 of the opaque token is stored. Every token minted by
rotation inherits the family_id of the login that started the chain, so a
reused (already rotated) token can revoke the whole chain at once.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func

from backend.app.db.base import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    family_id = Column(String(36), index=True, nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    # NULL while the token may still be exchanged
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
