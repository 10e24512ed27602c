from backend.app.models.user import User, UserRole
from backend.app.models.two_factor_auth import TwoFactorAuth
from backend.app.models.wallet_verification import WalletVerification, VerificationStatus
from backend.app.models.refresh_token import RefreshToken

__all__ = [
    "User",
    "UserRole",
    "TwoFactorAuth",
    "WalletVerification",
    "VerificationStatus",
    "RefreshToken",
]
