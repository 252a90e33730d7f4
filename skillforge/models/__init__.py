"""
Models package initialization
In-memory records and their enums
"""

from .base import CamelModel, Record
from .course import (
    Course,
    CourseLevel,
    Lesson,
    LessonContent,
    LessonType,
    Module,
    QuestionType,
    Quiz,
    QuizQuestion,
    Resource,
    ResourceType,
)
from .payment import PAYMENT_TRANSITIONS, PaymentIntent, PaymentStatus
from .user import (
    CourseProgress,
    LearningPreferences,
    NotificationPreferences,
    PrivacyPreferences,
    User,
    UserPreferences,
    UserRole,
)
