"""Phone verification endpoints."""

from fastapi import APIRouter, status

from app.dependencies import DatabaseSession, VerificationServiceDep
from app.schemas.auth import (
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from app.schemas.common import ApiResponse
from app.schemas.users import UserResponse

router = APIRouter(prefix="/verification", tags=["Verification"])


@router.post(
    "/send-code",
    response_model=ApiResponse[SendCodeResponse],
    status_code=status.HTTP_200_OK,
)
async def send_code(request: SendCodeRequest, verification: VerificationServiceDep):
    """
    Text a six-digit code to the phone number.

    Outside production, when SMS delivery is not configured, the code is
    returned as ``mockCode`` instead.
    """
    result = await verification.send_code(request.phone)
    return ApiResponse(message="Verification code sent", data=SendCodeResponse.model_validate(result))


@router.post("/verify-code", response_model=ApiResponse[VerifyCodeResponse])
async def verify_code(request: VerifyCodeRequest, verification: VerificationServiceDep, db: DatabaseSession):
    """Check the code, then sign the user in (creating the account on first login)."""
    user, token, is_new_user = await verification.verify_code(db, request.phone, request.code, request.name)
    return ApiResponse(
        message="Phone number verified",
        data=VerifyCodeResponse(
            user=UserResponse.model_validate(user),
            access_token=token,
            is_new_user=is_new_user,
        ),
    )
