# backend/app/schemas/wallet.py
from datetime import datetime

from pydantic import Field

from backend.app.schemas.user import CamelModel, UserResponse


class WalletVerificationRequest(CamelModel):
    wallet_address: str = Field(..., min_length=1, max_length=128)


class WalletVerificationResponse(CamelModel):
    message: str
    expires_at: datetime


class WalletConfirmRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=128)
    code: str = Field(..., min_length=1, max_length=16)


class WalletConfirmResponse(CamelModel):
    message: str
    user: UserResponse
