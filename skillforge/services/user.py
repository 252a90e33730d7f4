# skillforge/services/user.py
import logging
from typing import List, Tuple

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from skillforge.core.database import Database
from skillforge.core.exceptions import NotFound
from skillforge.models.user import User
from skillforge.schemas.common import Pagination
from skillforge.schemas.payment import PaymentHistoryItem
from skillforge.schemas.user import (
    EnrolledCourse,
    ProgressEntry,
    ProgressUpdate,
    UserFilter,
    UserResponse,
    UserStats,
    UserUpdate,
)
from skillforge.services.payment import UNKNOWN_COURSE, build_payment_history
from skillforge.utils.response import paginate
from skillforge.utils.storage import ObjectStorage, read_image_upload

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Database):
        self.db = db

    def _get_user(self, user_id: str) -> User:
        user = self.db.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_profile(self, user_id: str) -> UserResponse:
        return UserResponse.model_validate(self._get_user(user_id))

    def update_profile(self, user_id: str, user_in: UserUpdate) -> UserResponse:
        user = self._get_user(user_id)
        changes = user_in.model_dump(exclude_unset=True, exclude={"preferences"})

        # Preferences merge section by section; unspecified keys keep their value
        if user_in.preferences is not None:
            preferences = user.preferences.model_dump()
            for section, values in user_in.preferences.model_dump(
                exclude_unset=True
            ).items():
                if values is None:
                    continue
                preferences[section].update(
                    {k: v for k, v in values.items() if v is not None}
                )
            changes["preferences"] = preferences

        updated = self.db.users.update(user_id, changes)
        logger.info(f"Profile updated for user {user_id}")
        return UserResponse.model_validate(updated)

    async def upload_avatar(
        self, user_id: str, file: UploadFile, storage: ObjectStorage
    ) -> str:
        user = self._get_user(user_id)
        content = await read_image_upload(file)

        stored = await run_in_threadpool(
            storage.upload_file,
            content,
            file.filename,
            file.content_type,
            folder=f"avatars/{user_id}",
        )
        if user.avatar:
            await run_in_threadpool(storage.delete_url, user.avatar)

        self.db.users.update(user_id, {"avatar": stored.url})
        return stored.url

    def get_progress(self, user_id: str) -> List[ProgressEntry]:
        user = self._get_user(user_id)
        entries = []
        for progress in user.progress:
            course = self.db.courses.find_by_id(progress.course_id)
            entries.append(
                ProgressEntry(
                    **progress.model_dump(),
                    course_title=course.title if course else UNKNOWN_COURSE,
                    course_thumbnail=course.thumbnail if course else None,
                    total_modules=len(course.modules) if course else 0,
                )
            )
        return entries

    def update_progress(self, user_id: str, course_id: str, progress_in: ProgressUpdate):
        self._get_user(user_id)
        progress = self.db.users.update_progress(
            user_id,
            course_id,
            completed_modules=progress_in.completed_modules,
            current_module=progress_in.current_module,
            progress_percentage=progress_in.progress_percentage,
        )
        if progress is None:
            raise NotFound("Not enrolled in this course")
        return progress

    def get_stats(self, user_id: str) -> UserStats:
        user = self._get_user(user_id)

        minutes_learned = 0.0
        for progress in user.progress:
            course = self.db.courses.find_by_id(progress.course_id)
            if course:
                minutes_learned += course.duration * progress.progress_percentage / 100

        return UserStats(
            total_courses=len(user.progress),
            completed_courses=sum(
                1 for p in user.progress if p.progress_percentage >= 100
            ),
            in_progress_courses=sum(
                1 for p in user.progress if 0 < p.progress_percentage < 100
            ),
            total_hours_learned=round(minutes_learned / 60),
            certificates_earned=sum(1 for p in user.progress if p.certificate_earned),
        )

    def get_enrolled_courses(
        self, user_id: str, page: int, limit: int
    ) -> Tuple[List[EnrolledCourse], Pagination]:
        user = self._get_user(user_id)
        courses = []
        for progress in user.progress:
            course = self.db.courses.find_by_id(progress.course_id)
            # Deleted courses drop out of the list
            if course is None:
                continue
            courses.append(
                EnrolledCourse(
                    id=course.id,
                    title=course.title,
                    short_description=course.short_description,
                    thumbnail=course.thumbnail,
                    instructor_name=course.instructor_name,
                    level=course.level.value,
                    progress=progress.progress_percentage,
                    enrolled_at=progress.enrolled_at,
                    last_accessed_at=progress.last_accessed_at,
                )
            )
        return paginate(courses, page, limit)

    def get_payment_history(
        self, user_id: str, page: int, limit: int
    ) -> Tuple[List[PaymentHistoryItem], Pagination]:
        return paginate(build_payment_history(self.db, user_id), page, limit)

    def list_users(
        self, filters: UserFilter, page: int, limit: int
    ) -> Tuple[List[UserResponse], Pagination]:
        users = [UserResponse.model_validate(u) for u in self.db.users.search(filters)]
        return paginate(users, page, limit)

    def delete_account(self, user_id: str) -> None:
        self._get_user(user_id)
        # Payments and course references are kept; readers tolerate the gap
        self.db.users.delete(user_id)
        logger.info(f"User account deleted: {user_id}")
