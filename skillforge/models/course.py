from enum import Enum
from typing import List, Optional

from pydantic import Field

from skillforge.models.base import CamelModel, Record


class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ALL_LEVELS = "all_levels"


class LessonType(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    INTERACTIVE = "interactive"
    ASSIGNMENT = "assignment"


class ResourceType(str, Enum):
    PDF = "pdf"
    LINK = "link"
    DOWNLOAD = "download"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class Resource(CamelModel):
    id: str
    title: str
    type: ResourceType
    url: str
    size: Optional[int] = None


class LessonContent(CamelModel):
    video_url: Optional[str] = None
    text_content: Optional[str] = None
    interactive_content: Optional[dict] = None
    assignment_instructions: Optional[str] = None
    resources: List[Resource] = Field(default_factory=list)


class Lesson(CamelModel):
    id: str
    title: str
    description: str = ""
    order: int = 0
    type: LessonType = LessonType.VIDEO
    content: LessonContent = Field(default_factory=LessonContent)
    duration: int = 0
    is_preview: bool = False


class QuizQuestion(CamelModel):
    id: str
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: Optional[str] = None
    points: int = 1


class Quiz(CamelModel):
    id: str
    title: str
    description: str = ""
    questions: List[QuizQuestion] = Field(default_factory=list)
    passing_score: int = 70
    time_limit: Optional[int] = None


class Module(CamelModel):
    id: str
    title: str
    description: str = ""
    order: int = 0
    duration: int = 0
    lessons: List[Lesson] = Field(default_factory=list)
    quiz: Optional[Quiz] = None
    is_preview: bool = False


class Course(Record):
    title: str
    description: str
    short_description: str
    instructor_id: str
    instructor_name: str
    category: str
    subcategory: str
    level: CourseLevel
    price: float = Field(ge=0)
    currency: str
    thumbnail: str
    preview_video: Optional[str] = None
    duration: int = 0
    modules: List[Module] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    rating: float = 0
    review_count: int = 0
    enrollment_count: int = 0
    is_published: bool = False

    @property
    def is_free(self) -> bool:
        return self.price == 0
