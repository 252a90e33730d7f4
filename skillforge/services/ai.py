# skillforge/services/ai.py
"""
AI feature facade

Each feature validates its request (schemas), builds a prompt, asks the
language model for JSON and maps the reply onto the response schema. Missing
structure falls back to derived values; a collaborator failure surfaces as
AIServiceUnavailable.
"""

import logging
import math
import threading
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from skillforge.core.config import settings
from skillforge.core.database import Database
from skillforge.core.exceptions import AIServiceUnavailable, NotFound
from skillforge.core.permissions import Caller, can_view_course
from skillforge.models.course import Course, QuestionType
from skillforge.models.user import User
from skillforge.schemas.ai import (
    ChatHistoryEntry,
    CourseRecommendation,
    GeneratedQuestion,
    QuizRequest,
    QuizResponse,
    ResumeAnalysisRequest,
    ResumeAnalysisResponse,
    SkillAnalysis,
    SummaryRequest,
    SummaryResponse,
    TutorRequest,
    TutorResponse,
    UsageStats,
)
from skillforge.utils.ai import AIService, Completion, extract_json_from_response
from skillforge.utils.prompts import (
    RESUME_SYSTEM_MESSAGE,
    TUTOR_SYSTEM_MESSAGE,
    get_quiz_prompt,
    get_quiz_system_message,
    get_resume_prompt,
    get_summary_prompt,
    get_summary_system_message,
    get_tutor_prompt,
)

logger = logging.getLogger(__name__)

POINTS_BY_DIFFICULTY = {"easy": 1, "medium": 2, "hard": 3}
SUMMARY_MAX_TOKENS = {"short": 300, "medium": 600, "long": 1000}
WORDS_PER_MINUTE = 200
MINUTES_PER_QUESTION = 2


# ============================================
# Per-application state
# ============================================


class AIUsageTracker:
    """Request and token counters for the admin usage report."""

    def __init__(self, cost_per_1k_tokens: float = settings.ai_cost_per_1k_tokens):
        self.cost_per_1k_tokens = cost_per_1k_tokens
        self._lock = threading.Lock()
        self._requests: Dict[str, int] = defaultdict(int)
        self._failures = 0
        self._tokens = 0

    def record(self, feature: str, tokens: int) -> None:
        with self._lock:
            self._requests[feature] += 1
            self._tokens += tokens

    def record_failure(self, feature: str) -> None:
        with self._lock:
            self._failures += 1
        logger.warning(f"AI request failed for feature: {feature}")

    def snapshot(self) -> UsageStats:
        with self._lock:
            return UsageStats(
                tutor_questions=self._requests["tutor"],
                resume_analyses=self._requests["resume"],
                summaries_generated=self._requests["summary"],
                quizzes_generated=self._requests["quiz"],
                failed_requests=self._failures,
                total_tokens_used=self._tokens,
                cost_estimate=round(self._tokens / 1000 * self.cost_per_1k_tokens, 4),
            )


class ChatHistory:
    """Bounded per-user log of tutor exchanges."""

    def __init__(self, max_entries: int = settings.ai_chat_history_size):
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: Dict[str, Deque[ChatHistoryEntry]] = {}

    def append(self, user_id: str, entry: ChatHistoryEntry) -> None:
        with self._lock:
            log = self._entries.setdefault(user_id, deque(maxlen=self.max_entries))
            log.append(entry)

    def entries(
        self, user_id: str, course_id: Optional[str] = None
    ) -> List[ChatHistoryEntry]:
        with self._lock:
            entries = list(self._entries.get(user_id, ()))
        if course_id:
            entries = [e for e in entries if e.course_id == course_id]
        return list(reversed(entries))

    def clear(self, user_id: str) -> int:
        with self._lock:
            return len(self._entries.pop(user_id, ()))


# ============================================
# Reply coercion helpers
# ============================================


def _as_dict(reply: Any) -> Dict[str, Any]:
    return reply if isinstance(reply, dict) else {}


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return max(low, min(high, number))


def estimate_read_time(text: str) -> int:
    return max(1, math.ceil(len(text.split()) / WORDS_PER_MINUTE))


class AssistantService:
    def __init__(
        self,
        db: Database,
        llm: AIService,
        usage: AIUsageTracker,
        history: ChatHistory,
    ):
        self.db = db
        self.llm = llm
        self.usage = usage
        self.history = history

    async def _complete(
        self,
        feature: str,
        prompt: str,
        system_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        try:
            completion = await self.llm.generate_completion(
                prompt,
                system_message=system_message,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except AIServiceUnavailable:
            self.usage.record_failure(feature)
            raise
        self.usage.record(feature, completion.total_tokens)
        return completion

    # ------------------------------------------------------------------
    # Tutor
    # ------------------------------------------------------------------
    async def ask_tutor(self, request: TutorRequest, caller: Caller) -> TutorResponse:
        course = self.db.courses.find_by_id(request.course_id)
        if course is None or not can_view_course(caller, course):
            raise NotFound("Course not found")

        module = next((m for m in course.modules if m.id == request.module_id), None)
        lessons = (
            module.lessons
            if module
            else [lesson for m in course.modules for lesson in m.lessons]
        )
        lesson = next((item for item in lessons if item.id == request.lesson_id), None)

        completion = await self._complete(
            "tutor",
            get_tutor_prompt(
                request.question,
                course.title,
                context=request.context,
                module_title=module.title if module else None,
                lesson_title=lesson.title if lesson else None,
            ),
            TUTOR_SYSTEM_MESSAGE,
            temperature=0.7,
            max_tokens=1000,
        )

        reply = _as_dict(extract_json_from_response(completion.text))
        answer = str(reply.get("answer") or "").strip() or completion.text
        response = TutorResponse(
            answer=answer,
            suggestions=_string_list(reply.get("suggestions")),
            related_topics=_string_list(reply.get("relatedTopics")),
            confidence=_clamp(reply.get("confidence"), 0, 1, 0.5),
        )

        self.history.append(
            caller.user_id,
            ChatHistoryEntry(
                id=uuid.uuid4().hex,
                course_id=course.id,
                question=request.question,
                answer=response.answer,
                created_at=datetime.now(timezone.utc),
            ),
        )
        return response

    def get_chat_history(
        self, caller: Caller, course_id: Optional[str] = None
    ) -> List[ChatHistoryEntry]:
        return self.history.entries(caller.user_id, course_id)

    def clear_chat_history(self, caller: Caller) -> int:
        return self.history.clear(caller.user_id)

    # ------------------------------------------------------------------
    # Resume analysis
    # ------------------------------------------------------------------
    async def analyze_resume(self, request: ResumeAnalysisRequest) -> ResumeAnalysisResponse:
        completion = await self._complete(
            "resume",
            get_resume_prompt(
                request.resume_text, request.target_role, request.target_skills
            ),
            RESUME_SYSTEM_MESSAGE,
            temperature=0.3,
            max_tokens=1500,
        )

        reply = _as_dict(extract_json_from_response(completion.text))
        skills = []
        for item in reply.get("skillsAnalysis") or []:
            if not isinstance(item, dict) or not item.get("skill"):
                continue
            level = item.get("level")
            skills.append(
                SkillAnalysis(
                    skill=str(item["skill"]),
                    level=level
                    if level in ("beginner", "intermediate", "advanced")
                    else "intermediate",
                    relevance=int(_clamp(item.get("relevance"), 0, 100, 50)),
                    suggestions=_string_list(item.get("suggestions")),
                )
            )

        suggestions = _string_list(reply.get("suggestions"))
        if not reply:
            # Unstructured reply: keep the model's text as the single suggestion
            suggestions = [completion.text]

        return ResumeAnalysisResponse(
            overall_score=int(_clamp(reply.get("overallScore"), 0, 100, 0)),
            strengths=_string_list(reply.get("strengths")),
            weaknesses=_string_list(reply.get("weaknesses")),
            suggestions=suggestions,
            skills_analysis=skills,
            recommended_courses=_string_list(reply.get("recommendedCourses")),
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    async def summarize(self, request: SummaryRequest) -> SummaryResponse:
        completion = await self._complete(
            "summary",
            get_summary_prompt(request.content, request.type),
            get_summary_system_message(request.length),
            temperature=0.3,
            max_tokens=SUMMARY_MAX_TOKENS[request.length],
        )

        reply = _as_dict(extract_json_from_response(completion.text))
        summary = str(reply.get("summary") or "").strip() or completion.text
        return SummaryResponse(
            summary=summary,
            key_points=_string_list(reply.get("keyPoints")),
            action_items=_string_list(reply.get("actionItems")),
            estimated_read_time=estimate_read_time(summary),
        )

    # ------------------------------------------------------------------
    # Quiz
    # ------------------------------------------------------------------
    @staticmethod
    def _normalize_question(
        raw: Any, request: QuizRequest
    ) -> Optional[GeneratedQuestion]:
        if not isinstance(raw, dict):
            return None
        question = str(raw.get("question") or "").strip()
        answer = raw.get("correctAnswer")
        if isinstance(answer, list):
            answer = ", ".join(str(a) for a in answer)
        if not question or answer is None or str(answer).strip() == "":
            return None

        allowed = [t.value for t in request.question_types]
        qtype = raw.get("type") if raw.get("type") in allowed else allowed[0]

        options = _string_list(raw.get("options")) or None
        if qtype == QuestionType.TRUE_FALSE.value:
            options = ["true", "false"]
            answer = str(answer).strip().lower()
        elif qtype == QuestionType.MULTIPLE_CHOICE.value and not options:
            return None
        elif qtype == QuestionType.SHORT_ANSWER.value:
            options = None

        return GeneratedQuestion(
            id=uuid.uuid4().hex,
            type=qtype,
            question=question,
            options=options,
            correct_answer=str(answer).strip(),
            explanation=str(raw.get("explanation") or ""),
            difficulty=request.difficulty,
            points=POINTS_BY_DIFFICULTY[request.difficulty],
        )

    async def generate_quiz(self, request: QuizRequest) -> QuizResponse:
        question_types = [t.value for t in request.question_types]
        completion = await self._complete(
            "quiz",
            get_quiz_prompt(request.content),
            get_quiz_system_message(
                request.question_count, request.difficulty, question_types
            ),
            temperature=0.4,
            max_tokens=2000,
        )

        reply = extract_json_from_response(completion.text)
        raw_questions = reply.get("questions") if isinstance(reply, dict) else reply
        if not isinstance(raw_questions, list):
            raw_questions = []

        questions = []
        for raw in raw_questions:
            question = self._normalize_question(raw, request)
            if question is not None:
                questions.append(question)
            if len(questions) == request.question_count:
                break

        if not questions:
            logger.error("Quiz generation returned no usable questions")
            raise AIServiceUnavailable("AI service returned an unusable quiz")

        return QuizResponse(
            questions=questions,
            difficulty=request.difficulty,
            total_points=sum(q.points for q in questions),
            estimated_time=len(questions) * MINUTES_PER_QUESTION,
        )

    # ------------------------------------------------------------------
    # Recommendations & usage
    # ------------------------------------------------------------------
    @staticmethod
    def _interests(user: User, enrolled: List[Course]) -> Dict[str, str]:
        """Lower-cased interest term -> where it came from."""
        interests = {skill.lower(): "skill" for skill in user.skills}
        for course in enrolled:
            for tag in course.tags:
                interests.setdefault(tag.lower(), "enrolled")
            interests.setdefault(course.category.lower(), "enrolled")
        return interests

    def get_recommendations(self, user: User, limit: int = 5) -> List[CourseRecommendation]:
        enrolled_ids = {p.course_id for p in user.progress}
        enrolled = [
            c for c in (self.db.courses.find_by_id(i) for i in enrolled_ids) if c
        ]
        interests = self._interests(user, enrolled)

        scored = []
        for course in self.db.courses.find_by(
            lambda c: c.is_published, lambda c: c.id not in enrolled_ids
        ):
            terms = {t.lower() for t in course.tags} | {course.category.lower()}
            matches = sorted(terms & interests.keys())
            score = len(matches) + course.rating / 5
            reasons = [
                f"Matches your skill: {m}" if interests[m] == "skill" else f"Related to your courses: {m}"
                for m in matches
            ]
            if not reasons:
                reasons = ["Popular in the catalog"]
            scored.append((score, course.enrollment_count, course, reasons))

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [
            CourseRecommendation(
                course_id=course.id,
                title=course.title,
                category=course.category,
                level=course.level.value,
                price=course.price,
                rating=course.rating,
                score=round(score, 2),
                reasons=reasons,
            )
            for score, _, course, reasons in scored[:limit]
        ]

    def get_usage_stats(self) -> UsageStats:
        return self.usage.snapshot()
