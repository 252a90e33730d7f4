# skillforge/services/course.py
import logging
from typing import List, Optional, Tuple

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from skillforge.core.config import settings
from skillforge.core.database import Database
from skillforge.core.exceptions import Forbidden, NotFound, ValidationFailed
from skillforge.core.permissions import (
    Caller,
    can_view_course,
    require_ownership,
)
from skillforge.models.course import Course
from skillforge.models.payment import PaymentStatus
from skillforge.models.user import CourseProgress
from skillforge.schemas.common import Pagination
from skillforge.schemas.course import (
    CourseCreate,
    CourseDetailResponse,
    CourseFilter,
    CourseResponse,
    CourseSort,
    CourseStatsCorrection,
    CourseUpdate,
)
from skillforge.utils.response import paginate
from skillforge.utils.storage import ObjectStorage, read_image_upload

logger = logging.getLogger(__name__)

_SORT_KEYS = {
    "title": lambda c: c.title.lower(),
    "price": lambda c: c.price,
    "rating": lambda c: c.rating,
    "enrollmentCount": lambda c: c.enrollment_count,
    "createdAt": lambda c: c.created_at,
}


class CourseService:
    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _get_course(self, course_id: str) -> Course:
        course = self.db.courses.find_by_id(course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    def _get_owned_course(self, caller: Caller, course_id: str) -> Course:
        course = self._get_course(course_id)
        require_ownership(
            caller, course.instructor_id, "You can only modify your own courses"
        )
        return course

    @staticmethod
    def _sorted(courses: List[Course], sort: CourseSort) -> List[Course]:
        return sorted(
            courses,
            key=_SORT_KEYS[sort.sort_by],
            reverse=sort.sort_order == "desc",
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def get_courses(
        self,
        caller: Optional[Caller],
        filters: CourseFilter,
        sort: CourseSort,
        page: int = 1,
        limit: int = 12,
    ) -> Tuple[List[CourseResponse], Pagination]:
        """Published courses, plus drafts the caller may see."""
        include_unpublished = caller is not None and caller.is_admin
        visible_to = caller.user_id if caller is not None else None

        courses = list(
            self.db.courses.search(
                filters,
                include_unpublished=include_unpublished,
                visible_to=visible_to,
            )
        )
        courses = self._sorted(courses, sort)
        items, pagination = paginate(courses, page, limit)
        return [CourseResponse.model_validate(c) for c in items], pagination

    def get_course(self, course_id: str, caller: Optional[Caller]) -> CourseDetailResponse:
        course = self._get_course(course_id)
        if not can_view_course(caller, course):
            raise Forbidden("Course not available")

        progress: Optional[CourseProgress] = None
        if caller is not None:
            user = self.db.users.find_by_id(caller.user_id)
            if user is not None:
                progress = user.progress_for(course_id)

        return CourseDetailResponse.model_validate(
            {
                **course.model_dump(),
                "is_enrolled": progress is not None,
                "progress": progress,
            }
        )

    def get_instructor_courses(
        self, caller: Caller, page: int, limit: int
    ) -> Tuple[List[CourseResponse], Pagination]:
        courses = self.db.courses.find_by_instructor(caller.user_id)
        courses = self._sorted(courses, CourseSort())
        items, pagination = paginate(courses, page, limit)
        return [CourseResponse.model_validate(c) for c in items], pagination

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------
    def create_course(self, course_in: CourseCreate, caller: Caller) -> CourseResponse:
        instructor = self.db.users.find_by_id(caller.user_id)
        if instructor is None:
            raise NotFound("Instructor not found")

        data = course_in.model_dump()
        data.update(
            instructor_id=instructor.id,
            instructor_name=instructor.full_name,
            currency=(course_in.currency or settings.default_currency).upper(),
            thumbnail=course_in.thumbnail or settings.default_course_thumbnail,
            rating=0,
            review_count=0,
            enrollment_count=0,
            is_published=False,
        )
        course = self.db.courses.create(data)
        logger.info(f"Course created: {course.id} by {instructor.id}")
        return CourseResponse.model_validate(course)

    def update_course(
        self, course_id: str, course_in: CourseUpdate, caller: Caller
    ) -> CourseResponse:
        self._get_owned_course(caller, course_id)
        changes = course_in.model_dump(exclude_unset=True)
        if changes.get("currency"):
            changes["currency"] = changes["currency"].upper()
        course = self.db.courses.update(course_id, changes)
        return CourseResponse.model_validate(course)

    def delete_course(self, course_id: str, caller: Caller) -> None:
        self._get_owned_course(caller, course_id)
        # Enrollments and payments keep their dangling course reference
        self.db.courses.delete(course_id)
        logger.info(f"Course deleted: {course_id} by {caller.user_id}")

    def publish_course(self, course_id: str, caller: Caller) -> CourseResponse:
        course = self._get_owned_course(caller, course_id)
        if not course.is_published:
            course = self.db.courses.update(course_id, {"is_published": True})
            logger.info(f"Course published: {course_id}")
        return CourseResponse.model_validate(course)

    async def upload_thumbnail(
        self,
        course_id: str,
        file: UploadFile,
        caller: Caller,
        storage: ObjectStorage,
    ) -> str:
        course = self._get_owned_course(caller, course_id)
        content = await read_image_upload(file)

        # boto3 blocks; keep it off the event loop
        stored = await run_in_threadpool(
            storage.upload_file,
            content,
            file.filename,
            file.content_type,
            folder=f"thumbnails/{course_id}",
        )
        await run_in_threadpool(storage.delete_url, course.thumbnail)

        self.db.courses.update(course_id, {"thumbnail": stored.url})
        return stored.url

    def correct_stats(
        self, course_id: str, corrections: CourseStatsCorrection
    ) -> CourseResponse:
        self._get_course(course_id)
        course = self.db.courses.correct_stats(
            course_id, corrections.model_dump(exclude_unset=True)
        )
        logger.warning(f"Course stats corrected by admin: {course_id}")
        return CourseResponse.model_validate(course)

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------
    def _verify_purchase(
        self, user_id: str, course: Course, payment_intent_id: Optional[str]
    ) -> None:
        if payment_intent_id:
            payment = self.db.payments.find_by_provider_id(
                payment_intent_id
            ) or self.db.payments.find_by_id(payment_intent_id)
            if (
                payment is None
                or payment.user_id != user_id
                or payment.course_id != course.id
                or payment.status != PaymentStatus.SUCCEEDED
            ):
                raise ValidationFailed("Payment not completed")
            return

        if self.db.payments.find_successful(user_id, course.id) is None:
            raise ValidationFailed("Payment required")

    def enroll(
        self, course_id: str, caller: Caller, payment_intent_id: Optional[str] = None
    ) -> CourseProgress:
        course = self._get_course(course_id)
        if not course.is_published:
            raise Forbidden("Course is not available for enrollment")

        if not course.is_free:
            self._verify_purchase(caller.user_id, course, payment_intent_id)

        user = self.db.users.add_progress(caller.user_id, course_id)
        if user is None:
            raise NotFound("User not found")
        self.db.courses.increment_enrollment(course_id)

        logger.info(f"User {caller.user_id} enrolled in course {course_id}")
        return user.progress_for(course_id)

