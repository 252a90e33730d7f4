from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from skillforge.core.config import settings
from skillforge.core.database import Database, get_db
from skillforge.core.dependencies import authenticate, authorize, get_storage
from skillforge.core.permissions import Caller
from skillforge.models.user import UserRole
from skillforge.schemas.user import ProgressUpdate, UserFilter, UserUpdate
from skillforge.services.user import UserService
from skillforge.utils.response import success_response
from skillforge.utils.storage import ObjectStorage

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("")
def list_users(
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    admin: Caller = Depends(authorize(UserRole.ADMIN)),
):
    """List users filtered by role or a name/email search. Admin only."""
    filters = UserFilter(role=role, search=search)
    users, pagination = UserService(db).list_users(filters, page, limit)
    return success_response(users, "Users retrieved successfully", pagination)


@router.get("/profile")
def get_profile(
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    return success_response(
        UserService(db).get_profile(caller.user_id), "Profile retrieved successfully"
    )


@router.put("/profile")
def update_profile(
    user_in: UserUpdate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    """Update name, bio, skills or any subset of the preference bundle"""
    user = UserService(db).update_profile(caller.user_id, user_in)
    return success_response(user, "Profile updated successfully")


@router.post("/avatar")
async def upload_avatar(
    avatar: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    caller: Caller = Depends(authenticate),
):
    url = await UserService(db).upload_avatar(caller.user_id, avatar, storage)
    signed_url = await run_in_threadpool(storage.signed_url, url)
    return success_response(
        {"avatar": url, "signedUrl": signed_url},
        "Avatar uploaded successfully",
    )


@router.get("/progress")
def get_progress(
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    return success_response(
        UserService(db).get_progress(caller.user_id), "Progress retrieved successfully"
    )


@router.put("/progress/{course_id}")
def update_progress(
    course_id: str,
    progress_in: ProgressUpdate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    progress = UserService(db).update_progress(caller.user_id, course_id, progress_in)
    return success_response(progress, "Progress updated successfully")


@router.get("/stats")
def get_stats(
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    return success_response(
        UserService(db).get_stats(caller.user_id), "Stats retrieved successfully"
    )


@router.get("/courses")
def get_enrolled_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    courses, pagination = UserService(db).get_enrolled_courses(
        caller.user_id, page, limit
    )
    return success_response(
        courses, "Enrolled courses retrieved successfully", pagination
    )


@router.get("/payments")
def get_payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    payments, pagination = UserService(db).get_payment_history(
        caller.user_id, page, limit
    )
    return success_response(
        payments, "Payment history retrieved successfully", pagination
    )


@router.delete("/account")
def delete_account(
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    UserService(db).delete_account(caller.user_id)
    return success_response(message="Account deleted successfully")
