from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillforge.models.base import CamelModel
from skillforge.models.user import CourseProgress, UserPreferences, UserRole


class UserResponse(CamelModel):
    """Public view of a user record; never carries the password hash."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    avatar: Optional[str] = None
    bio: str = ""
    skills: List[str] = Field(default_factory=list)
    preferences: UserPreferences
    progress: List[CourseProgress] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ==================== Profile update ====================


class NotificationPreferencesUpdate(CamelModel):
    email: Optional[bool] = None
    push: Optional[bool] = None
    course_updates: Optional[bool] = None
    marketing: Optional[bool] = None


class PrivacyPreferencesUpdate(CamelModel):
    profile_visibility: Optional[Literal["public", "private"]] = None
    show_progress: Optional[bool] = None


class LearningPreferencesUpdate(CamelModel):
    difficulty: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    pace: Optional[Literal["slow", "normal", "fast"]] = None
    reminder_time: Optional[str] = None


class PreferencesUpdate(CamelModel):
    notifications: Optional[NotificationPreferencesUpdate] = None
    privacy: Optional[PrivacyPreferencesUpdate] = None
    learning: Optional[LearningPreferencesUpdate] = None


class UserUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    skills: Optional[List[str]] = None
    preferences: Optional[PreferencesUpdate] = None


class ProgressUpdate(CamelModel):
    completed_modules: Optional[List[str]] = None
    current_module: Optional[str] = None
    progress_percentage: Optional[float] = Field(None, ge=0, le=100)


# ==================== Read models ====================


class ProgressEntry(CourseProgress):
    course_title: str
    course_thumbnail: Optional[str] = None
    total_modules: int = 0


class EnrolledCourse(CamelModel):
    id: str
    title: str
    short_description: str
    thumbnail: str
    instructor_name: str
    level: str
    progress: float = 0
    enrolled_at: datetime
    last_accessed_at: datetime


class UserStats(CamelModel):
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_hours_learned: int
    certificates_earned: int


class UserFilter(CamelModel):
    role: Optional[UserRole] = None
    search: Optional[str] = Field(None, min_length=1, max_length=100)
