# skillforge/routers/ai.py
"""
AI learning assistant endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from skillforge.core.dependencies import (
    authenticate,
    authorize,
    get_assistant_service,
    get_current_user,
)
from skillforge.core.limiter import AI_RATE_LIMIT, limiter
from skillforge.core.permissions import Caller
from skillforge.models.user import User, UserRole
from skillforge.schemas.ai import (
    QuizRequest,
    ResumeAnalysisRequest,
    SummaryRequest,
    TutorRequest,
)
from skillforge.services.ai import AssistantService
from skillforge.utils.response import success_response

router = APIRouter(prefix="/api/ai", tags=["AI"])


@router.post("/tutor")
@limiter.limit(AI_RATE_LIMIT)
async def ask_tutor(
    request: Request,
    tutor_in: TutorRequest,
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Answer a learner's question in the context of a course.

    Args:
        tutor_in: question (10-1000 chars), optional context, courseId and
            optional moduleId/lessonId to narrow the context
        caller: Authenticated user

    Returns:
        answer, suggestions, relatedTopics and a 0-1 confidence
    """
    answer = await service.ask_tutor(tutor_in, caller)
    return success_response(answer, "AI tutor response generated")


@router.get("/chat-history")
def get_chat_history(
    course_id: Optional[str] = Query(None, alias="courseId"),
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    """Caller's tutor exchanges, newest first, optionally for one course"""
    return success_response(
        service.get_chat_history(caller, course_id),
        "Chat history retrieved successfully",
    )


@router.delete("/chat-history")
def clear_chat_history(
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    cleared = service.clear_chat_history(caller)
    return success_response({"cleared": cleared}, "Chat history cleared")


@router.post("/resume-analysis")
@limiter.limit(AI_RATE_LIMIT)
async def analyze_resume(
    request: Request,
    resume_in: ResumeAnalysisRequest,
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    analysis = await service.analyze_resume(resume_in)
    return success_response(analysis, "Resume analysis completed")


@router.post("/summary")
@limiter.limit(AI_RATE_LIMIT)
async def summarize_content(
    request: Request,
    summary_in: SummaryRequest,
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    summary = await service.summarize(summary_in)
    return success_response(summary, "Summary generated successfully")


@router.post("/quiz")
@limiter.limit(AI_RATE_LIMIT)
async def generate_quiz(
    request: Request,
    quiz_in: QuizRequest,
    caller: Caller = Depends(authenticate),
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Generate quiz questions from lesson content.
    Points follow the difficulty (easy 1, medium 2, hard 3).
    """
    quiz = await service.generate_quiz(quiz_in)
    return success_response(quiz, "Quiz generated successfully")


@router.get("/recommendations")
def get_recommendations(
    limit: int = Query(5, ge=1, le=20),
    user: User = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service),
):
    """Published courses the user is not enrolled in, ranked by interest overlap"""
    return success_response(
        service.get_recommendations(user, limit),
        "Recommendations generated successfully",
    )


@router.get("/usage-stats")
def get_usage_stats(
    admin: Caller = Depends(authorize(UserRole.ADMIN)),
    service: AssistantService = Depends(get_assistant_service),
):
    return success_response(
        service.get_usage_stats(), "AI usage stats retrieved successfully"
    )
