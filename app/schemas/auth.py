"""Phone verification schemas."""

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.users import UserResponse

# US numbers only, E.164
PHONE_PATTERN = r"^\+1\d{10}$"


class SendCodeRequest(CamelModel):
    phone: str = Field(..., pattern=PHONE_PATTERN, description="E.164 US number, e.g. +15125550100")


class SendCodeResponse(CamelModel):
    phone: str
    expires_in: int
    # Only present outside production when SMS delivery is not configured
    mock_code: str | None = None


class VerifyCodeRequest(CamelModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)
    code: str = Field(..., pattern=r"^\d{6}$")
    name: str | None = Field(None, max_length=100)


class VerifyCodeResponse(CamelModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    is_new_user: bool
