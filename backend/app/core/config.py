# backend/app/core/config.py
"""
Application configuration using pydantic-settings.

Security considerations:
- No hardcoded secrets in production (SECRET_KEY must be set via env)
- CORS_ORIGINS parsed from comma-separated env var, never defaults to "*"
- Database URLs normalized for async drivers automatically
- Refresh cookie is only marked Secure in production
"""
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Strictly typed application settings.

    Priority for loading:
    1. Environment variables (highest priority)
    2. .env file (via pydantic-settings)
    3. Default values (lowest priority, dev-safe only)
    """

    # ─────────────────────────────────────────────────────────────
    # Application metadata
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Stellar Auth"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # development | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Security: JWT access tokens + refresh cookie
    # SECRET_KEY MUST be set in production via environment variable
    # ─────────────────────────────────────────────────────────────
    SECRET_KEY: str = "INSECURE_DEV_KEY_CHANGE_IN_PRODUCTION"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_COOKIE_NAME: str = "refreshToken"

    # Browser is sent here after the Auth0 callback
    FRONTEND_URL: str = "http://localhost:3000"

    # ─────────────────────────────────────────────────────────────
    # Auth0 (external identity)
    # The callback accepts an HS256 id_token signed with the client secret
    # ─────────────────────────────────────────────────────────────
    AUTH0_DOMAIN: str = ""
    AUTH0_CLIENT_ID: str = ""
    AUTH0_CLIENT_SECRET: str = ""

    # Shown in authenticator apps
    TOTP_ISSUER: str = "Stellar Auth"

    # ─────────────────────────────────────────────────────────────
    # Stellar / wallet verification
    # ─────────────────────────────────────────────────────────────
    STELLAR_HORIZON_URL: str = "https://horizon.stellar.org"
    STELLAR_REQUEST_TIMEOUT: float = 10.0
    WALLET_VERIFICATION_EXPIRE_HOURS: int = 24
    # Link placed in the verification email, token/code are appended
    WALLET_VERIFICATION_URL: str = "http://localhost:8000/api/v1/wallet/verification/confirm"

    # ─────────────────────────────────────────────────────────────
    # Outgoing mail (SMTP + STARTTLS)
    # Empty SMTP_HOST disables delivery (messages are only logged)
    # ─────────────────────────────────────────────────────────────
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    MAIL_FROM: str = "Stellar Auth <no-reply@example.com>"

    # "<count>/<period>", parsed by the `limits` library
    WEBHOOK_RATE_LIMIT: str = "10/15 minutes"
    # Reverse proxies in front of the app that append to X-Forwarded-For.
    # 0: the header is ignored and the socket peer is the client.
    TRUSTED_PROXY_HOPS: int = 0

    # ─────────────────────────────────────────────────────────────
    # Database Configuration
    # Priority: DATABASE_URL env var → SQLite fallback for local dev
    # postgres:// and postgresql:// are normalized to postgresql+asyncpg://
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./stellar_auth.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """
        Normalize database URLs for async SQLAlchemy compatibility.

        Conversions:
        - postgres://     → postgresql+asyncpg://
        - postgresql://   → postgresql+asyncpg://
        - sqlite:///      → sqlite+aiosqlite:///
        """
        if v is None:
            return "sqlite+aiosqlite:///./stellar_auth.db"

        url = v.strip()

        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        if url.startswith("postgresql://") and "+asyncpg" not in url:
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("sqlite:///") and "+aiosqlite" not in url:
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        return url

    # MUST be False in production to prevent SQL query exposure
    DATABASE_ECHO: bool = False

    # ─────────────────────────────────────────────────────────────
    # CORS Configuration
    # Empty string → empty list (NOT "*" for security)
    # ─────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        """Parse CORS_ORIGINS string into a list of allowed origins."""
        if not self.CORS_ORIGINS or not self.CORS_ORIGINS.strip():
            return []

        return [
            origin.strip()
            for origin in self.CORS_ORIGINS.split(",")
            if origin.strip()
        ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Extra fields in .env are ignored (prevents config injection)
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database (local development)."""
        return "sqlite" in self.DATABASE_URL.lower()

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds, reported to clients as expiresIn."""
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    @property
    def auth0_issuer(self) -> str:
        return f"https://{self.AUTH0_DOMAIN}/" if self.AUTH0_DOMAIN else ""


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance.

    The application factory calls this once at startup and stores the
    result on app.state; request handlers read it from there.
    """
    return Settings()
