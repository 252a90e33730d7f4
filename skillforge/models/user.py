from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import Field

from skillforge.models.base import CamelModel, Record


class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class NotificationPreferences(CamelModel):
    email: bool = True
    push: bool = True
    course_updates: bool = True
    marketing: bool = False


class PrivacyPreferences(CamelModel):
    profile_visibility: Literal["public", "private"] = "public"
    show_progress: bool = True


class LearningPreferences(CamelModel):
    difficulty: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    pace: Literal["slow", "normal", "fast"] = "normal"
    reminder_time: Optional[str] = None


class UserPreferences(CamelModel):
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    privacy: PrivacyPreferences = Field(default_factory=PrivacyPreferences)
    learning: LearningPreferences = Field(default_factory=LearningPreferences)


class CourseProgress(CamelModel):
    course_id: str
    enrolled_at: datetime
    completed_modules: List[str] = Field(default_factory=list)
    current_module: Optional[str] = None
    progress_percentage: float = Field(default=0, ge=0, le=100)
    last_accessed_at: datetime
    certificate_earned: bool = False
    certificate_url: Optional[str] = None


class User(Record):
    email: str
    password: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.STUDENT
    avatar: Optional[str] = None
    bio: str = ""
    skills: List[str] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    progress: List[CourseProgress] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def progress_for(self, course_id: str) -> Optional[CourseProgress]:
        for entry in self.progress:
            if entry.course_id == course_id:
                return entry
        return None
