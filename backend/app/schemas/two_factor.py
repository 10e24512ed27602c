# backend/app/schemas/two_factor.py
from pydantic import Field

from backend.app.schemas.user import CamelModel


class TwoFactorSetupResponse(CamelModel):
    """
    Returned once when setup starts.

    qr_code is a Base64 PNG of otpauth_url, for
    <img src="data:image/png;base64,{qrCode}">.
    """
    secret: str
    otpauth_url: str
    qr_code: str


class TwoFactorTokenRequest(CamelModel):
    token: str = Field(..., min_length=6, max_length=8)
