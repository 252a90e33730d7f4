from typing import List, Optional

# ============================================
# SYSTEM MESSAGES
# ============================================

JSON_ONLY_RULES = """
OUTPUT FORMAT:
• Return ONLY valid JSON matching the schema below
• NO additional text or explanations outside JSON"""

TUTOR_SYSTEM_MESSAGE = f"""You are an AI tutor for Skill Forge, an online learning platform.
You help students understand course material and answer their questions in a helpful, encouraging way.
Always give a clear explanation and suggest related topics for further learning.
{JSON_ONLY_RULES}
{{"answer": string, "suggestions": [string], "relatedTopics": [string], "confidence": number between 0 and 1}}"""

RESUME_SYSTEM_MESSAGE = f"""You are an AI career advisor that analyzes resumes and gives constructive feedback.
Identify strengths and weaknesses, give actionable suggestions, and recommend relevant course topics.
{JSON_ONLY_RULES}
{{"overallScore": integer 0-100, "strengths": [string], "weaknesses": [string], "suggestions": [string],
 "skillsAnalysis": [{{"skill": string, "level": "beginner"|"intermediate"|"advanced", "relevance": integer 0-100, "suggestions": [string]}}],
 "recommendedCourses": [string]}}"""

SUMMARY_LENGTH_GUIDE = {
    "short": "Create a brief summary in 2-3 sentences",
    "medium": "Provide a moderate summary, 1-2 paragraphs",
    "long": "Create a comprehensive summary with detailed explanations",
}

QUIZ_DIFFICULTY_GUIDE = {
    "easy": "Simple recall and basic definitions",
    "medium": "Understanding and application of concepts",
    "hard": "Analysis and multi-step reasoning",
}


# ============================================
# PROMPT BUILDERS
# ============================================


def get_tutor_prompt(
    question: str,
    course_title: str,
    context: Optional[str] = None,
    module_title: Optional[str] = None,
    lesson_title: Optional[str] = None,
) -> str:
    lines = [f"Course: {course_title}"]
    if module_title:
        lines.append(f"Module: {module_title}")
    if lesson_title:
        lines.append(f"Lesson: {lesson_title}")
    if context:
        lines.append(f"Context: {context}")
    lines.append("")
    lines.append(f"Student Question: {question}")
    return "\n".join(lines)


def get_resume_prompt(
    resume_text: str,
    target_role: Optional[str] = None,
    target_skills: Optional[List[str]] = None,
) -> str:
    lines = [f"Resume Text:\n{resume_text}", ""]
    if target_role:
        lines.append(f"Target Role: {target_role}")
    if target_skills:
        lines.append(f"Target Skills: {', '.join(target_skills)}")
    lines.append("Analyze this resume and provide structured feedback.")
    return "\n".join(lines)


def get_summary_system_message(length: str) -> str:
    return f"""You are an AI that creates educational summaries for online learning content.
Create clear, well-structured summaries that help students understand key concepts.
{SUMMARY_LENGTH_GUIDE[length]}.
{JSON_ONLY_RULES}
{{"summary": string, "keyPoints": [string], "actionItems": [string]}}"""


def get_summary_prompt(content: str, content_type: str) -> str:
    return f"Content Type: {content_type}\nContent:\n{content}"


def get_quiz_system_message(
    question_count: int, difficulty: str, question_types: List[str]
) -> str:
    return f"""You are an AI that creates educational quizzes for online learning.
Generate exactly {question_count} questions based on the provided content.
Difficulty: {difficulty} ({QUIZ_DIFFICULTY_GUIDE[difficulty]})
Question types: {', '.join(question_types)}
For true_false questions the correctAnswer is "true" or "false" and options are omitted.
{JSON_ONLY_RULES}
{{"questions": [{{"type": string, "question": string, "options": [string] or null, "correctAnswer": string, "explanation": string}}]}}"""


def get_quiz_prompt(content: str) -> str:
    return f"Content:\n{content}"
