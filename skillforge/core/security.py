# core/security.py
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import redis
from jose import JWTError, jwt

from skillforge.core.config import Settings, settings
from skillforge.core.exceptions import Unauthenticated
from skillforge.models.user import User

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class JWTManager:
    """JWT token management for authentication"""

    def __init__(self, config: Settings = settings):
        self.access_secret = config.jwt_access_secret
        self.refresh_secret = config.jwt_refresh_secret
        self.algorithm = config.jwt_algorithm
        self.access_token_expire = timedelta(
            minutes=config.jwt_access_expiration_minutes
        )
        self.refresh_token_expire = timedelta(days=config.jwt_refresh_expiration_days)
        self.issuer = config.jwt_issuer

    def _secret_for(self, token_type: str) -> str:
        return self.refresh_secret if token_type == REFRESH else self.access_secret

    def _create_token(self, user: User, token_type: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "user_id": user.id,
            "email": user.email,
            "role": user.role.value,
            "exp": int((now + lifetime).timestamp()),
            "iat": int(now.timestamp()),
            "iss": self.issuer,
            "type": token_type,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_for(token_type), algorithm=self.algorithm)

    def create_access_token(self, user: User) -> str:
        """Short-lived token carried on every authenticated request."""
        return self._create_token(user, ACCESS, self.access_token_expire)

    def create_refresh_token(self, user: User) -> str:
        """Long-lived token exchanged for a new pair at /api/auth/refresh."""
        return self._create_token(user, REFRESH, self.refresh_token_expire)

    def create_token_pair(self, user: User) -> Tuple[str, str]:
        """
        Create both access and refresh tokens

        Returns:
            Tuple of (access_token, refresh_token)
        """
        access_token = self.create_access_token(user)
        refresh_token = self.create_refresh_token(user)
        logger.info(f"Token pair issued for user: {user.id}")
        return access_token, refresh_token

    def verify_token(self, token: str, token_type: str = ACCESS) -> Dict[str, Any]:
        """
        Verify signature, expiry, type and issuer, then return the payload.

        Raises:
            Unauthenticated: on any verification failure
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_for(token_type),
                algorithms=[self.algorithm],
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise Unauthenticated("Invalid or expired token")

        if payload.get("type") != token_type:
            raise Unauthenticated(f"Invalid token type. Expected {token_type}")

        if payload.get("iss") != self.issuer:
            raise Unauthenticated("Invalid token issuer")

        if not payload.get("user_id") or not payload.get("jti"):
            raise Unauthenticated("Invalid token payload")

        return payload

    @staticmethod
    def seconds_until_expiry(payload: Dict[str, Any]) -> int:
        exp = payload.get("exp", 0)
        remaining = exp - int(datetime.now(timezone.utc).timestamp())
        return max(remaining, 1)


class TokenBlacklist:
    """Revoked token ids; Redis-backed when a client is supplied"""

    def __init__(self, redis_client=None):
        self.redis_client = redis_client
        self._memory_blacklist: Dict[str, float] = {}
        self._lock = threading.Lock()

    def add_token(self, jti: str, ttl: Optional[int] = None) -> bool:
        """
        Revoke a token by its jti

        Args:
            jti: token id claim
            ttl: seconds until the token would have expired anyway

        Returns:
            True if successfully added, False otherwise
        """
        ttl = ttl or 24 * 3600
        try:
            if self.redis_client:
                return bool(self.redis_client.setex(f"blacklist:{jti}", ttl, "1"))
            now = datetime.now(timezone.utc).timestamp()
            with self._lock:
                self._purge_expired(now)
                self._memory_blacklist[jti] = now + ttl
            return True
        except Exception as e:
            logger.error(f"Failed to blacklist token: {e}")
            return False

    def _purge_expired(self, now: float) -> None:
        """Drop entries whose token has expired; caller holds the lock."""
        expired = [jti for jti, at in self._memory_blacklist.items() if at < now]
        for jti in expired:
            self._memory_blacklist.pop(jti, None)

    def is_blacklisted(self, jti: str) -> bool:
        if self.redis_client:
            try:
                return bool(self.redis_client.get(f"blacklist:{jti}"))
            except Exception as e:
                # Fail closed: an unreachable blacklist rejects the token
                logger.error(f"Failed to check token blacklist: {e}")
                return True

        with self._lock:
            expires_at = self._memory_blacklist.get(jti)
            if expires_at is None:
                return False
            if expires_at < datetime.now(timezone.utc).timestamp():
                self._memory_blacklist.pop(jti, None)
                return False
            return True

    def revoke(self, payload: Dict[str, Any]) -> bool:
        """Revoke a verified token payload until its natural expiry."""
        return self.add_token(
            payload["jti"], JWTManager.seconds_until_expiry(payload)
        )


def build_token_blacklist(config: Settings = settings) -> TokenBlacklist:
    """Token blacklist backed by Redis when enabled, memory otherwise."""
    if not config.redis_enabled:
        return TokenBlacklist()

    try:
        client = redis.Redis.from_url(config.redis_url, decode_responses=True)
        client.ping()
        logger.info("Redis connection established for token blacklist")
        return TokenBlacklist(client)
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        return TokenBlacklist()
