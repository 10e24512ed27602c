# backend/app/security/jwt.py
"""
Access token (JWT) helpers.

Access tokens are short-lived HS256 JWTs:
    {"sub": "<user id>", "role": "user", "type": "access", "exp": ...}
Refresh tokens are NOT JWTs; see services/auth.py.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    data: Dict[str, Any],
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire, "type": ACCESS_TOKEN_TYPE})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Raises JWTError if the signature, expiry or token type is wrong.
    """
    payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    return payload
