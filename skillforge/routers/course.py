# skillforge/routers/course.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from skillforge.core.config import settings
from skillforge.core.database import Database, get_db
from skillforge.core.dependencies import (
    authenticate,
    authorize,
    get_storage,
    optional_authenticate,
)
from skillforge.core.permissions import Caller
from skillforge.models.course import CourseLevel
from skillforge.models.user import UserRole
from skillforge.schemas.course import (
    CourseCreate,
    CourseFilter,
    CourseSort,
    CourseSortField,
    CourseStatsCorrection,
    CourseUpdate,
    EnrollRequest,
)
from skillforge.services.course import CourseService
from skillforge.utils.response import success_response
from skillforge.utils.storage import ObjectStorage

router = APIRouter(
    prefix="/api/courses",
    tags=["Courses"],
    responses={404: {"description": "Not found"}},
)

authors = authorize(UserRole.INSTRUCTOR, UserRole.ADMIN)


def course_filters(
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    level: Optional[CourseLevel] = Query(None),
    instructor_id: Optional[str] = Query(None, alias="instructorId"),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    tags: Optional[List[str]] = Query(None),
    price_min: Optional[float] = Query(None, alias="priceMin", ge=0),
    price_max: Optional[float] = Query(None, alias="priceMax", ge=0),
    rating: Optional[float] = Query(None, ge=0, le=5),
) -> CourseFilter:
    return CourseFilter(
        category=category,
        subcategory=subcategory,
        level=level,
        instructor_id=instructor_id,
        search=search,
        tags=tags,
        price_min=price_min,
        price_max=price_max,
        rating=rating,
    )


def course_sort(
    sort_by: CourseSortField = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> CourseSort:
    return CourseSort(sort_by=sort_by, sort_order=sort_order)


# ==================== Catalog ====================


@router.get("")
def list_courses(
    filters: CourseFilter = Depends(course_filters),
    sort: CourseSort = Depends(course_sort),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.course_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Optional[Caller] = Depends(optional_authenticate),
):
    """
    Get list of courses with pagination, filters and sorting.
    Anonymous callers see published courses only.
    """
    courses, pagination = CourseService(db).get_courses(
        caller, filters, sort, page, limit
    )
    return success_response(courses, "Courses retrieved successfully", pagination)


@router.get("/search")
def search_courses(
    q: str = Query(..., min_length=1, max_length=100, description="Search query"),
    filters: CourseFilter = Depends(course_filters),
    sort: CourseSort = Depends(course_sort),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.course_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Optional[Caller] = Depends(optional_authenticate),
):
    """Search courses by title, description or tag."""
    filters = filters.model_copy(update={"search": q})
    courses, pagination = CourseService(db).get_courses(
        caller, filters, sort, page, limit
    )
    return success_response(courses, "Search results retrieved successfully", pagination)


@router.get("/instructor/courses")
def get_instructor_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Caller = Depends(authors),
):
    """Courses owned by the calling instructor, drafts included."""
    courses, pagination = CourseService(db).get_instructor_courses(
        caller, page, limit
    )
    return success_response(
        courses, "Instructor courses retrieved successfully", pagination
    )


@router.get("/{course_id}")
def get_course(
    course_id: str,
    db: Database = Depends(get_db),
    caller: Optional[Caller] = Depends(optional_authenticate),
):
    course = CourseService(db).get_course(course_id, caller)
    return success_response(course, "Course retrieved successfully")


# ==================== Authoring ====================


@router.post("")
def create_course(
    course_in: CourseCreate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authors),
):
    """
    Create a draft course.
    Only instructors and admins can create courses.
    """
    course = CourseService(db).create_course(course_in, caller)
    return success_response(course, "Course created successfully")


@router.put("/{course_id}")
def update_course(
    course_id: str,
    course_in: CourseUpdate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authors),
):
    course = CourseService(db).update_course(course_id, course_in, caller)
    return success_response(course, "Course updated successfully")


@router.delete("/{course_id}")
def delete_course(
    course_id: str,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authors),
):
    CourseService(db).delete_course(course_id, caller)
    return success_response(message="Course deleted successfully")


@router.post("/{course_id}/publish")
def publish_course(
    course_id: str,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authors),
):
    """Publish a draft. Publishing is one-way; repeating it is a no-op."""
    course = CourseService(db).publish_course(course_id, caller)
    return success_response(course, "Course published successfully")


@router.post("/{course_id}/thumbnail")
async def upload_course_thumbnail(
    course_id: str,
    thumbnail: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    caller: Caller = Depends(authors),
):
    url = await CourseService(db).upload_thumbnail(
        course_id, thumbnail, caller, storage
    )
    signed_url = await run_in_threadpool(storage.signed_url, url)
    return success_response(
        {"thumbnail": url, "signedUrl": signed_url},
        "Thumbnail uploaded successfully",
    )


@router.patch("/{course_id}/stats")
def correct_course_stats(
    course_id: str,
    corrections: CourseStatsCorrection,
    db: Database = Depends(get_db),
    admin: Caller = Depends(authorize(UserRole.ADMIN)),
):
    """Administrative correction of rating, review and enrollment counters."""
    course = CourseService(db).correct_stats(course_id, corrections)
    return success_response(course, "Course stats corrected")


# ==================== Enrollment ====================


@router.post("/{course_id}/enroll")
def enroll_in_course(
    course_id: str,
    enroll_in: Optional[EnrollRequest] = None,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    """
    Enroll the caller. Free courses enroll immediately; paid courses need a
    succeeded payment for this course.
    """
    progress = CourseService(db).enroll(
        course_id, caller, enroll_in.payment_intent_id if enroll_in else None
    )
    return success_response(progress, "Successfully enrolled in course")
