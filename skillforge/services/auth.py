# services/auth.py
import logging
import threading
from typing import Optional

from skillforge.core.database import Database
from skillforge.core.exceptions import Forbidden, Unauthenticated
from skillforge.core.hasher import PasswordHelper
from skillforge.core.permissions import Caller
from skillforge.core.security import REFRESH, JWTManager, TokenBlacklist
from skillforge.models.user import User, UserPreferences, UserRole
from skillforge.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
)
from skillforge.schemas.user import UserResponse

# Setup logging
logger = logging.getLogger(__name__)

# Compared against when the email is unknown so both paths pay for a bcrypt check
_DUMMY_HASH = PasswordHelper.hash_password("not-a-real-password", rounds=4)

# Serializes refresh token rotation so a token can be exchanged only once
_rotation_lock = threading.Lock()


class AuthService:
    def __init__(
        self, db: Database, jwt_manager: JWTManager, blacklist: TokenBlacklist
    ):
        self.db = db
        self.jwt_manager = jwt_manager
        self.blacklist = blacklist
        self.password_helper = PasswordHelper()

    def _auth_response(self, user: User) -> AuthResponse:
        access_token, refresh_token = self.jwt_manager.create_token_pair(user)
        return AuthResponse(
            user=UserResponse.model_validate(user),
            token=access_token,
            refresh_token=refresh_token,
        )

    def login(self, request: LoginRequest) -> AuthResponse:
        user = self.db.users.find_by_email(request.email)

        if user is None:
            self.password_helper.check_password(request.password, _DUMMY_HASH)
            logger.info(f"Login failed for unknown email: {request.email}")
            raise Unauthenticated("Invalid email or password")

        if not self.password_helper.check_password(request.password, user.password):
            logger.info(f"Login failed for user: {user.id}")
            raise Unauthenticated("Invalid email or password")

        logger.info(f"User logged in: {user.id}")
        return self._auth_response(user)

    def signup(self, request: SignupRequest) -> AuthResponse:
        role = request.role or UserRole.STUDENT
        if role == UserRole.ADMIN:
            raise Forbidden("Cannot self-register as admin")

        user = self.db.users.create_user(
            {
                "email": request.email,
                "password": self.password_helper.hash_password(request.password),
                "first_name": request.first_name,
                "last_name": request.last_name,
                "role": role,
                "preferences": UserPreferences(),
            }
        )

        logger.info(f"New user registered: {user.id} ({user.role.value})")
        return self._auth_response(user)

    def refresh_token(self, refresh_token: str) -> AuthResponse:
        """Exchange a refresh token for a new pair, revoking the one used."""
        payload = self.jwt_manager.verify_token(refresh_token, REFRESH)

        with _rotation_lock:
            if self.blacklist.is_blacklisted(payload["jti"]):
                logger.warning(f"Revoked refresh token replayed for {payload['user_id']}")
                raise Unauthenticated("Token has been revoked")

            user = self.db.users.find_by_id(payload["user_id"])
            if user is None:
                raise Unauthenticated("User not found")

            self.blacklist.revoke(payload)

        return self._auth_response(user)

    def get_profile(self, caller: Caller) -> UserResponse:
        user = self.db.users.find_by_id(caller.user_id)
        if user is None:
            raise Unauthenticated("User not found")
        return UserResponse.model_validate(user)

    def logout(self, caller: Caller, refresh_token: Optional[str] = None) -> None:
        """Revoke the access token; an unusable refresh token does not block logout."""
        self.blacklist.add_token(
            caller.jti, JWTManager.seconds_until_expiry({"exp": caller.exp})
        )
        if refresh_token:
            try:
                payload = self.jwt_manager.verify_token(refresh_token, REFRESH)
            except Unauthenticated as e:
                logger.info(f"Logout of {caller.user_id} skipped refresh token: {e.message}")
            else:
                if payload["user_id"] == caller.user_id:
                    self.blacklist.revoke(payload)
        logger.info(f"User logged out: {caller.user_id}")

    def change_password(self, caller: Caller, request: ChangePasswordRequest) -> None:
        user = self.db.users.find_by_id(caller.user_id)
        if user is None:
            raise Unauthenticated("User not found")

        if not self.password_helper.check_password(
            request.current_password, user.password
        ):
            raise Unauthenticated("Current password is incorrect")

        self.db.users.update(
            user.id,
            {"password": self.password_helper.hash_password(request.new_password)},
        )
        logger.info(f"Password changed for user: {user.id}")
