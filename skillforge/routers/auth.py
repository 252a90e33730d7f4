from typing import Optional

from fastapi import APIRouter, Depends, Request

from skillforge.core.database import Database, get_db
from skillforge.core.dependencies import (
    authenticate,
    get_jwt_manager,
    get_token_blacklist,
)
from skillforge.core.limiter import AUTH_RATE_LIMIT, limiter
from skillforge.core.permissions import Caller
from skillforge.core.security import JWTManager, TokenBlacklist
from skillforge.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    SignupRequest,
)
from skillforge.services.auth import AuthService
from skillforge.utils.response import success_response

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_auth_service(
    db: Database = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> AuthService:
    return AuthService(db, jwt_manager, blacklist)


@router.post("/login")
@limiter.limit(AUTH_RATE_LIMIT)
async def login(
    request: Request,
    login_in: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Exchange email and password for an access/refresh token pair"""
    return success_response(service.login(login_in), "Login successful")


@router.post("/signup")
@limiter.limit(AUTH_RATE_LIMIT)
async def signup(
    request: Request,
    signup_in: SignupRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Register a student or instructor account"""
    return success_response(service.signup(signup_in), "Account created successfully")


@router.post("/refresh")
async def refresh_token(
    refresh_in: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Rotate tokens: the refresh token used here cannot be used again"""
    return success_response(
        service.refresh_token(refresh_in.refresh_token),
        "Token refreshed successfully",
    )


@router.get("/profile")
async def get_profile(
    caller: Caller = Depends(authenticate),
    service: AuthService = Depends(get_auth_service),
):
    return success_response(service.get_profile(caller), "Profile retrieved successfully")


@router.post("/logout")
async def logout(
    logout_in: Optional[LogoutRequest] = None,
    caller: Caller = Depends(authenticate),
    service: AuthService = Depends(get_auth_service),
):
    """Revoke the current access token and, if given, the refresh token"""
    service.logout(caller, logout_in.refresh_token if logout_in else None)
    return success_response(message="Logged out successfully")


@router.post("/change-password")
async def change_password(
    password_in: ChangePasswordRequest,
    caller: Caller = Depends(authenticate),
    service: AuthService = Depends(get_auth_service),
):
    service.change_password(caller, password_in)
    return success_response(message="Password changed successfully")
