from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from skillforge.models.base import CamelModel
from skillforge.models.course import QuestionType

Difficulty = Literal["easy", "medium", "hard"]


# ==================== Requests ====================


class TutorRequest(CamelModel):
    question: str = Field(..., min_length=10, max_length=1000)
    context: Optional[str] = Field(None, max_length=2000)
    course_id: str = Field(..., min_length=1)
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None


class ResumeAnalysisRequest(CamelModel):
    resume_text: str = Field(..., min_length=100, max_length=10000)
    target_role: Optional[str] = Field(None, max_length=100)
    target_skills: Optional[List[str]] = None


class SummaryRequest(CamelModel):
    content: str = Field(..., min_length=100, max_length=10000)
    type: Literal["lesson", "module", "course"]
    length: Literal["short", "medium", "long"] = "medium"


class QuizRequest(CamelModel):
    content: str = Field(..., min_length=100, max_length=10000)
    question_count: int = Field(5, ge=1, le=20)
    difficulty: Difficulty = "medium"
    question_types: List[QuestionType] = Field(
        default_factory=lambda: [QuestionType.MULTIPLE_CHOICE], min_length=1
    )


# ==================== Responses ====================


class TutorResponse(CamelModel):
    answer: str
    suggestions: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)
    confidence: float = Field(0.5, ge=0, le=1)


class SkillAnalysis(CamelModel):
    skill: str
    level: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    relevance: int = Field(50, ge=0, le=100)
    suggestions: List[str] = Field(default_factory=list)


class ResumeAnalysisResponse(CamelModel):
    overall_score: int = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    skills_analysis: List[SkillAnalysis] = Field(default_factory=list)
    recommended_courses: List[str] = Field(default_factory=list)


class SummaryResponse(CamelModel):
    summary: str
    key_points: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list)
    estimated_read_time: int = Field(ge=1)


class GeneratedQuestion(CamelModel):
    id: str
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    difficulty: Difficulty
    points: int


class QuizResponse(CamelModel):
    questions: List[GeneratedQuestion]
    difficulty: Difficulty
    total_points: int
    estimated_time: int


class ChatHistoryEntry(CamelModel):
    id: str
    course_id: str
    question: str
    answer: str
    created_at: datetime


class CourseRecommendation(CamelModel):
    course_id: str
    title: str
    category: str
    level: str
    price: float
    rating: float
    score: float
    reasons: List[str] = Field(default_factory=list)


class UsageStats(CamelModel):
    tutor_questions: int = 0
    resume_analyses: int = 0
    summaries_generated: int = 0
    quizzes_generated: int = 0
    failed_requests: int = 0
    total_tokens_used: int = 0
    cost_estimate: float = 0
