# backend/app/security/hashing.py
from typing import Optional

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Check a password against a stored hash.

    Unknown users and Auth0-only accounts (no local hash) still pay one
    bcrypt round, so the response time does not reveal whether the
    account exists.
    """
    if not hashed_password:
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognised hash
        return False
