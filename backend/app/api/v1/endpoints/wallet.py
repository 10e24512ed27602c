# backend/app/api/v1/endpoints/wallet.py
"""
Stellar wallet verification endpoints.

Endpoints:
- POST /wallet/verification          - Start verification for the current user
- POST /wallet/verification/confirm  - Confirm with token + code
- GET  /wallet/verification/confirm  - Same, for the link in the email

Confirmation is rate limited per client (webhook-class endpoint).
"""
from fastapi import APIRouter, Depends, Query, status

from backend.app.api import deps
from backend.app.api.rate_limit import webhook_rate_limit
from backend.app.models.user import User
from backend.app.schemas.user import UserResponse
from backend.app.schemas.wallet import (
    WalletConfirmRequest,
    WalletConfirmResponse,
    WalletVerificationRequest,
    WalletVerificationResponse,
)
from backend.app.services.wallet_verification import WalletVerificationService

router = APIRouter()


@router.post(
    "/verification",
    response_model=WalletVerificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_wallet_verification(
    request: WalletVerificationRequest,
    wallet_service: WalletVerificationService = Depends(deps.get_wallet_verification_service),
    current_user: User = Depends(deps.get_current_user),
):
    verification = await wallet_service.initiate_verification(current_user.id, request.wallet_address)
    return WalletVerificationResponse(
        message="Verification email sent.",
        expires_at=verification.expires_at,
    )


async def _confirm(wallet_service: WalletVerificationService, token: str, code: str) -> WalletConfirmResponse:
    user = await wallet_service.verify_wallet(token, code)
    return WalletConfirmResponse(
        message="Wallet verified successfully.",
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/verification/confirm",
    response_model=WalletConfirmResponse,
    dependencies=[Depends(webhook_rate_limit)],
)
async def confirm_wallet_verification(
    request: WalletConfirmRequest,
    wallet_service: WalletVerificationService = Depends(deps.get_wallet_verification_service),
):
    return await _confirm(wallet_service, request.token, request.code)


@router.get(
    "/verification/confirm",
    response_model=WalletConfirmResponse,
    dependencies=[Depends(webhook_rate_limit)],
)
async def confirm_wallet_verification_link(
    token: str = Query(..., min_length=1, max_length=128),
    code: str = Query(..., min_length=1, max_length=16),
    wallet_service: WalletVerificationService = Depends(deps.get_wallet_verification_service),
):
    return await _confirm(wallet_service, token, code)
