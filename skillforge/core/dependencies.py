import logging
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skillforge.core.database import Database, get_db
from skillforge.core.exceptions import Unauthenticated
from skillforge.core.permissions import Caller, require_roles
from skillforge.core.security import ACCESS, JWTManager, TokenBlacklist
from skillforge.models.user import User, UserRole
from skillforge.services.ai import AssistantService
from skillforge.utils.payment_gateway import PaymentGateway
from skillforge.utils.storage import ObjectStorage

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_jwt_manager(request: Request) -> JWTManager:
    return request.app.state.jwt_manager


def get_token_blacklist(request: Request) -> TokenBlacklist:
    return request.app.state.token_blacklist


def _resolve_caller(
    credentials: Optional[HTTPAuthorizationCredentials],
    jwt_manager: JWTManager,
    blacklist: TokenBlacklist,
) -> Caller:
    if not credentials or not credentials.credentials:
        raise Unauthenticated("Access token required")

    payload = jwt_manager.verify_token(credentials.credentials, ACCESS)

    if blacklist.is_blacklisted(payload["jti"]):
        raise Unauthenticated("Token has been revoked")

    return Caller.from_payload(payload)


async def authenticate(
    credentials: HTTPAuthorizationCredentials = Security(security),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> Caller:
    """
    Dependency that requires a valid Bearer token and returns the caller.
    Raises 401 if the token is missing, invalid, expired or revoked.
    """
    return _resolve_caller(credentials, jwt_manager, blacklist)


async def optional_authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> Optional[Caller]:
    """
    Dependency that returns the caller when a valid token is provided, or None.
    An invalid token is treated as an anonymous request.
    """
    if not credentials:
        return None
    try:
        return _resolve_caller(credentials, jwt_manager, blacklist)
    except Unauthenticated:
        return None


def authorize(*roles: UserRole):
    """
    Dependency factory restricting a route to the given roles.
    Usage: Depends(authorize(UserRole.INSTRUCTOR, UserRole.ADMIN))
    """

    async def role_checker(caller: Caller = Depends(authenticate)) -> Caller:
        return require_roles(caller, roles)

    return role_checker


async def get_current_user(
    caller: Caller = Depends(authenticate),
    db: Database = Depends(get_db),
) -> User:
    """Load the full user record for the caller; 401 if it no longer exists."""
    user = db.users.find_by_id(caller.user_id)
    if not user:
        raise Unauthenticated("User not found")
    return user


# ==================== Collaborators ====================


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_assistant_service(
    request: Request, db: Database = Depends(get_db)
) -> AssistantService:
    state = request.app.state
    return AssistantService(db, state.llm, state.ai_usage, state.chat_history)
