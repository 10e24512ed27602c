# backend/app/core/errors.py
"""
Error kinds raised by the service layer.

Every failure a service can report is a member of one of the closed
enumerations below. A member carries a stable machine-readable code, the
default human message and the HTTP status it maps to. The API layer renders
AppError in exactly one place (see main.register_exception_handlers).
"""
from enum import Enum
from typing import Optional

from fastapi import status


class ErrorKind(Enum):
    """Base for per-component error enumerations: (code, message, http status)."""

    def __init__(self, code: str, message: str, status_code: int):
        self.code = code
        self.default_message = message
        self.status_code = status_code


class CommonErrorCode(ErrorKind):
    INTERNAL = ("internal_error", "Internal server error.", status.HTTP_500_INTERNAL_SERVER_ERROR)
    RATE_LIMITED = (
        "rate_limited",
        "Too many requests, please try again later.",
        status.HTTP_429_TOO_MANY_REQUESTS,
    )
    NOT_AUTHENTICATED = ("not_authenticated", "Could not validate credentials", status.HTTP_401_UNAUTHORIZED)
    USER_NOT_FOUND = ("user_not_found", "User not found", status.HTTP_404_NOT_FOUND)
    EMAIL_DELIVERY_FAILED = ("email_delivery_failed", "Could not send email.", status.HTTP_502_BAD_GATEWAY)


class AuthErrorCode(ErrorKind):
    EMAIL_TAKEN = ("email_taken", "User with this email already exists", status.HTTP_400_BAD_REQUEST)
    INVALID_CREDENTIALS = ("invalid_credentials", "Invalid email or password", status.HTTP_401_UNAUTHORIZED)
    TWO_FACTOR_REQUIRED = (
        "two_factor_required",
        "2FA is enabled. Please use /login-2fa instead.",
        status.HTTP_403_FORBIDDEN,
    )
    TWO_FACTOR_TOKEN_REQUIRED = (
        "two_factor_token_required",
        "2FA is enabled, token is required",
        status.HTTP_400_BAD_REQUEST,
    )
    EXTERNAL_AUTH_FAILED = ("external_auth_failed", "Authentication failed", status.HTTP_401_UNAUTHORIZED)
    EXTERNAL_EMAIL_UNVERIFIED = (
        "external_email_unverified",
        "Verify your email address with the identity provider before signing in",
        status.HTTP_401_UNAUTHORIZED,
    )
    MISSING_REFRESH_TOKEN = ("missing_refresh_token", "No refresh token provided", status.HTTP_401_UNAUTHORIZED)
    INVALID_REFRESH_TOKEN = ("invalid_refresh_token", "Invalid refresh token", status.HTTP_401_UNAUTHORIZED)
    REFRESH_TOKEN_EXPIRED = ("refresh_token_expired", "Refresh token has expired", status.HTTP_401_UNAUTHORIZED)
    REFRESH_TOKEN_REUSED = (
        "refresh_token_reused",
        "Refresh token has already been used",
        status.HTTP_401_UNAUTHORIZED,
    )


class TwoFactorErrorCode(ErrorKind):
    NOT_ENABLED = (
        "two_factor_not_enabled",
        "2FA is not enabled for this account. Use /login instead.",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_TOKEN = ("invalid_two_factor_token", "Invalid 2FA token", status.HTTP_401_UNAUTHORIZED)
    ALREADY_ENABLED = ("two_factor_already_enabled", "2FA is already enabled", status.HTTP_400_BAD_REQUEST)
    SETUP_REQUIRED = (
        "two_factor_setup_required",
        "2FA setup has not been started",
        status.HTTP_400_BAD_REQUEST,
    )


class WalletErrorCode(ErrorKind):
    INVALID_WALLET_ADDRESS = (
        "invalid_wallet_address",
        "Invalid Stellar wallet address.",
        status.HTTP_400_BAD_REQUEST,
    )
    VERIFICATION_NOT_FOUND = (
        "verification_not_found",
        "Invalid or expired verification.",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_VERIFICATION_CODE = (
        "invalid_verification_code",
        "Invalid verification code.",
        status.HTTP_400_BAD_REQUEST,
    )
    WALLET_NOT_FOUND = (
        "wallet_not_found",
        "Wallet address does not exist on the Stellar network.",
        status.HTTP_400_BAD_REQUEST,
    )
    STELLAR_NETWORK_ERROR = (
        "stellar_network_error",
        "Could not reach the Stellar network.",
        status.HTTP_502_BAD_GATEWAY,
    )


class AppError(Exception):
    """Raised by services; carries an ErrorKind plus an optional message override."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}

    def __repr__(self) -> str:
        return f"AppError({self.kind.__class__.__name__}.{self.kind.name}, {self.message!r})"


class StellarNetworkError(AppError):
    """Horizon answered with something other than 200/404, or was unreachable."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(WalletErrorCode.STELLAR_NETWORK_ERROR, message)
