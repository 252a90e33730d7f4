from typing import Optional

from pydantic import EmailStr, Field

from skillforge.models.base import CamelModel
from skillforge.models.user import UserRole
from skillforge.schemas.user import UserResponse


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    role: Optional[UserRole] = None


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AuthResponse(CamelModel):
    user: UserResponse
    token: str
    refresh_token: str
