# backend/app/schemas/user.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # JSON goes out as camelCase; requests may use either spelling
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Body of POST /auth/register
class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


# Never includes the password hash
class UserResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    is_email_verified: bool
    is_wallet_verified: bool
    wallet_address: Optional[str] = None
    created_at: Optional[datetime] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginWith2FARequest(LoginRequest):
    # Optional at the schema level: a missing token is a 400 from the handler
    token: Optional[str] = None


class TokenResponse(CamelModel):
    access_token: str
    expires_in: int


class LoginResponse(TokenResponse):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class Auth0Profile(BaseModel):
    """Identity asserted by Auth0 (id_token claims). Consumed once, not stored."""
    sub: str
    email: EmailStr
    name: Optional[str] = None
    email_verified: bool = False


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
    type: Optional[str] = None
