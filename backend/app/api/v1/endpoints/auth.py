# backend/app/api/v1/endpoints/auth.py
"""
Authentication endpoints.

Every handler converts service failures into a JSON {"message": ...}
response with the status its contract prescribes; nothing escapes to the
transport layer. Unexpected exceptions are logged and reported as the
generic "Internal server error.".
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from backend.app.api import deps
from backend.app.core.config import Settings
from backend.app.core.errors import AppError, AuthErrorCode, CommonErrorCode, ErrorKind, TwoFactorErrorCode
from backend.app.models.user import User
from backend.app.schemas.user import (
    Auth0Profile,
    LoginRequest,
    LoginResponse,
    LoginWith2FARequest,
    MessageResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from backend.app.security import hashing
from backend.app.services.auth import AuthService, LoginResult
from backend.app.services.two_factor import validate_two_factor_authentication

logger = logging.getLogger(__name__)

router = APIRouter()


def set_refresh_cookie(response: Response, refresh_token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_TOKEN_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.refresh_cookie_max_age,
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_TOKEN_COOKIE_NAME,
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="strict",
    )


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def kind_response(kind: ErrorKind) -> JSONResponse:
    return error_response(kind.status_code, kind.default_message)


def internal_error(status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    return error_response(status_code, CommonErrorCode.INTERNAL.default_message)


def login_response(result: LoginResult, settings: Settings) -> JSONResponse:
    body = LoginResponse(
        user=UserResponse.model_validate(result.user),
        access_token=result.tokens.access_token,
        expires_in=result.tokens.expires_in,
    )
    response = JSONResponse(content=body.model_dump(mode="json", by_alias=True))
    set_refresh_cookie(response, result.tokens.refresh_token, settings)
    return response


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
        user_in: UserCreate,
        auth_service: AuthService = Depends(deps.get_auth_service),
):
    try:
        user = await auth_service.register(user_in)
    except AppError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e.message)
    except Exception:
        logger.exception("event=register_failed")
        return internal_error(status.HTTP_400_BAD_REQUEST)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login(
        credentials: LoginRequest,
        auth_service: AuthService = Depends(deps.get_auth_service),
        settings: Settings = Depends(deps.get_settings_dep),
):
    try:
        user = await auth_service.get_user_by_email(credentials.email)
        if not hashing.verify_password(credentials.password, user.hashed_password if user else None):
            return kind_response(AuthErrorCode.INVALID_CREDENTIALS)

        if user.two_factor_auth is not None and user.two_factor_auth.is_enabled:
            # Credentials were valid, but no tokens leave this path
            return kind_response(AuthErrorCode.TWO_FACTOR_REQUIRED)

        result = await auth_service.login(credentials.email, credentials.password)
        return login_response(result, settings)
    except AppError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e.message)
    except Exception:
        logger.exception("event=login_failed")
        return internal_error(status.HTTP_401_UNAUTHORIZED)


@router.post("/login-2fa", response_model=LoginResponse)
async def login_with_2fa(
        credentials: LoginWith2FARequest,
        auth_service: AuthService = Depends(deps.get_auth_service),
        settings: Settings = Depends(deps.get_settings_dep),
):
    try:
        user = await auth_service.get_user_by_email(credentials.email)
        if not hashing.verify_password(credentials.password, user.hashed_password if user else None):
            return kind_response(AuthErrorCode.INVALID_CREDENTIALS)

        if user.two_factor_auth is None or not user.two_factor_auth.is_enabled:
            return kind_response(TwoFactorErrorCode.NOT_ENABLED)

        if not credentials.token:
            return kind_response(AuthErrorCode.TWO_FACTOR_TOKEN_REQUIRED)

        try:
            await validate_two_factor_authentication(auth_service.db, user.id, credentials.token)
        except AppError as e:
            return error_response(status.HTTP_401_UNAUTHORIZED, e.message or "Invalid 2FA token")

        result = await auth_service.login(credentials.email, credentials.password)
        return login_response(result, settings)
    except AppError as e:
        return error_response(e.status_code, e.message)
    except Exception:
        logger.exception("event=login_2fa_failed")
        return internal_error()


@router.get("/auth0/callback")
async def auth0_callback(
        profile: Optional[Auth0Profile] = Depends(deps.get_auth0_profile),
        auth_service: AuthService = Depends(deps.get_auth_service),
        settings: Settings = Depends(deps.get_settings_dep),
):
    if profile is None:
        return kind_response(AuthErrorCode.EXTERNAL_AUTH_FAILED)

    try:
        result = await auth_service.login_with_auth0(profile)
    except AppError as e:
        if e.kind is AuthErrorCode.EXTERNAL_EMAIL_UNVERIFIED:
            return kind_response(e.kind)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)
    except Exception:
        logger.exception("event=auth0_callback_failed")
        return internal_error()

    query = urlencode({
        "accessToken": result.tokens.access_token,
        "expiresIn": str(result.tokens.expires_in),
    })
    response = RedirectResponse(url=f"{settings.FRONTEND_URL}?{query}", status_code=status.HTTP_302_FOUND)
    set_refresh_cookie(response, result.tokens.refresh_token, settings)
    return response


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
        request: Request,
        auth_service: AuthService = Depends(deps.get_auth_service),
        settings: Settings = Depends(deps.get_settings_dep),
):
    token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE_NAME)
    if not token:
        return kind_response(AuthErrorCode.MISSING_REFRESH_TOKEN)

    try:
        tokens = await auth_service.refresh(token)
    except Exception as e:
        if not isinstance(e, AppError):
            logger.exception("event=refresh_failed")
        message = e.message if isinstance(e, AppError) else CommonErrorCode.INTERNAL.default_message
        response = error_response(status.HTTP_401_UNAUTHORIZED, message)
        clear_refresh_cookie(response, settings)
        return response

    body = TokenResponse(access_token=tokens.access_token, expires_in=tokens.expires_in)
    response = JSONResponse(content=body.model_dump(by_alias=True))
    set_refresh_cookie(response, tokens.refresh_token, settings)
    return response


@router.post("/logout", response_model=MessageResponse)
async def logout(
        request: Request,
        auth_service: AuthService = Depends(deps.get_auth_service),
        settings: Settings = Depends(deps.get_settings_dep),
):
    try:
        token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE_NAME)
        if token:
            await auth_service.logout(token)
    except Exception:
        logger.exception("event=logout_failed")
        return internal_error()

    response = JSONResponse(content={"message": "Logged out successfully"})
    clear_refresh_cookie(response, settings)
    return response


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(deps.get_current_user)):
    return UserResponse.model_validate(current_user)

