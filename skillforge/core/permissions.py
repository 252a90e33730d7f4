"""
Authorization gate

Every role and ownership decision in the API goes through the helpers in this
module. Handlers receive a Caller resolved from the access token and ask the
gate before touching another user's resources.
"""

from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from skillforge.core.exceptions import Forbidden
from skillforge.models.course import Course
from skillforge.models.user import UserRole


class Caller(BaseModel):
    """Identity established from a verified access token."""

    user_id: str
    email: str
    role: UserRole
    jti: str
    exp: int

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Caller":
        return cls(
            user_id=payload["user_id"],
            email=payload.get("email", ""),
            role=payload.get("role", UserRole.STUDENT.value),
            jti=payload["jti"],
            exp=payload["exp"],
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def require_roles(caller: Caller, roles: Iterable[UserRole]) -> Caller:
    if caller.role not in set(roles):
        raise Forbidden("Insufficient permissions")
    return caller


def is_owner_or_admin(caller: Optional[Caller], owner_id: str) -> bool:
    if caller is None:
        return False
    return caller.is_admin or caller.user_id == owner_id


def require_ownership(
    caller: Caller, owner_id: str, message: str = "Access denied"
) -> Caller:
    """Admins pass; everyone else must own the resource."""
    if not is_owner_or_admin(caller, owner_id):
        raise Forbidden(message)
    return caller


def can_view_course(caller: Optional[Caller], course: Course) -> bool:
    return course.is_published or is_owner_or_admin(caller, course.instructor_id)
