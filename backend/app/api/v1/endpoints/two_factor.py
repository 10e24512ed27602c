# backend/app/api/v1/endpoints/two_factor.py
"""
TOTP enrollment for the authenticated user.

Endpoints:
- POST /2fa/setup   - Generate a secret + QR code (factor stays disabled)
- POST /2fa/enable  - Confirm a code from the authenticator, enable the factor
- POST /2fa/disable - Disable the factor (requires a current code)

Service errors propagate as AppError and are rendered by the
application-wide handler.
"""
from fastapi import APIRouter, Depends

from backend.app.api import deps
from backend.app.models.user import User
from backend.app.schemas.two_factor import TwoFactorSetupResponse, TwoFactorTokenRequest
from backend.app.schemas.user import MessageResponse
from backend.app.services.two_factor import TwoFactorService

router = APIRouter()


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    two_factor_service: TwoFactorService = Depends(deps.get_two_factor_service),
    current_user: User = Depends(deps.get_current_user),
):
    """
    Start (or restart) enrollment.

    The secret is shown once; the client renders qrCode for the
    authenticator app, then calls /enable with the first code.
    """
    return await two_factor_service.setup(current_user)


@router.post("/enable", response_model=MessageResponse)
async def enable_two_factor(
    request: TwoFactorTokenRequest,
    two_factor_service: TwoFactorService = Depends(deps.get_two_factor_service),
    current_user: User = Depends(deps.get_current_user),
):
    await two_factor_service.enable(current_user, request.token)
    return MessageResponse(message="2FA has been enabled.")


@router.post("/disable", response_model=MessageResponse)
async def disable_two_factor(
    request: TwoFactorTokenRequest,
    two_factor_service: TwoFactorService = Depends(deps.get_two_factor_service),
    current_user: User = Depends(deps.get_current_user),
):
    await two_factor_service.disable(current_user, request.token)
    return MessageResponse(message="2FA has been disabled.")
