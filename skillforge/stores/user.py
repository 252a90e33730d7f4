import logging
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from skillforge.core.exceptions import Conflict
from skillforge.core.store import EntityStore
from skillforge.models.user import CourseProgress, User
from skillforge.schemas.user import UserFilter

logger = logging.getLogger(__name__)


class UserStore(EntityStore[User]):
    model = User
    id_prefix = "user"

    def find_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        return self.find_one(lambda user: user.email.lower() == normalized)

    def create_user(self, fields: dict) -> User:
        """Insert a user, rejecting a duplicate email in the same critical section."""
        fields = dict(fields)
        fields["email"] = fields["email"].strip().lower()
        with self.locked():
            if self.find_by_email(fields["email"]) is not None:
                raise Conflict("User with this email already exists")
            return self.create(fields)

    def search(self, filters: UserFilter) -> Iterator[User]:
        predicates = []
        if filters.role is not None:
            predicates.append(lambda user: user.role == filters.role)
        if filters.search:
            needle = filters.search.lower()
            predicates.append(
                lambda user: needle in user.first_name.lower()
                or needle in user.last_name.lower()
                or needle in user.email.lower()
            )
        return self.find_by(*predicates)

    def add_progress(self, user_id: str, course_id: str) -> Optional[User]:
        """Enroll a user: insert a CourseProgress unless one already exists."""
        with self.locked():
            user = self.find_by_id(user_id)
            if user is None:
                return None
            if user.progress_for(course_id) is not None:
                raise Conflict("Already enrolled in this course")

            now = datetime.now(timezone.utc)
            entry = CourseProgress(
                course_id=course_id, enrolled_at=now, last_accessed_at=now
            )
            return self.update(user_id, {"progress": [*user.progress, entry]})

    def remove_progress(self, user_id: str, course_id: str) -> Optional[User]:
        with self.locked():
            user = self.find_by_id(user_id)
            if user is None:
                return None
            remaining = [p for p in user.progress if p.course_id != course_id]
            return self.update(user_id, {"progress": remaining})

    def update_progress(
        self,
        user_id: str,
        course_id: str,
        completed_modules: Optional[List[str]] = None,
        current_module: Optional[str] = None,
        progress_percentage: Optional[float] = None,
    ) -> Optional[CourseProgress]:
        """Apply a partial progress update; None if the user is not enrolled."""
        with self.locked():
            user = self.find_by_id(user_id)
            if user is None:
                return None
            entry = user.progress_for(course_id)
            if entry is None:
                return None

            if completed_modules is not None:
                # Set semantics, first occurrence order
                merged = list(dict.fromkeys([*entry.completed_modules, *completed_modules]))
                entry.completed_modules = merged
            if current_module is not None:
                entry.current_module = current_module
            if progress_percentage is not None:
                entry.progress_percentage = progress_percentage
                if progress_percentage >= 100:
                    entry.certificate_earned = True
            entry.last_accessed_at = datetime.now(timezone.utc)

            progress = [
                entry if p.course_id == course_id else p for p in user.progress
            ]
            updated = self.update(user_id, {"progress": progress})
            logger.debug(f"Progress updated for user {user_id} on course {course_id}")
            return updated.progress_for(course_id)
