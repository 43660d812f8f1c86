"""
AI interviewer

Builds the interviewer prompt for a session and produces the next reply,
falling back to a canned question when the LLM is unavailable.
"""
import random
from typing import Any, Dict, List, Optional

from loguru import logger

from mockmate.models.interview import InterviewSession
from mockmate.models.resume import UserResume
from .llm_client import LLMClient, get_llm_client

# Difficulty vocabulary collapses onto three prompt levels
LEVELS = {
    "beginner": "beginner",
    "easy": "beginner",
    "intermediate": "intermediate",
    "medium": "intermediate",
    "advanced": "advanced",
    "hard": "advanced",
    "expert": "advanced",
}

SYSTEM_PROMPTS: Dict[str, Dict[str, str]] = {
    "technical": {
        "beginner": (
            "You are an experienced technical interviewer conducting a beginner-level interview. "
            "Ask clear, foundational questions about programming concepts and basic algorithms. "
            "Be encouraging and offer hints when the candidate struggles."
        ),
        "intermediate": (
            "You are an experienced technical interviewer conducting an intermediate-level interview. "
            "Ask about data structures, algorithms, system design basics and practical problems. "
            "Focus on problem-solving approach and code quality."
        ),
        "advanced": (
            "You are a senior technical interviewer conducting an advanced-level interview. "
            "Ask about system design, performance and scalability, and dig into edge cases."
        ),
    },
    "behavioral": {
        "beginner": (
            "You are conducting a behavioral interview for an entry-level position. "
            "Ask about teamwork, communication and learning ability."
        ),
        "intermediate": (
            "You are conducting a behavioral interview for a mid-level position. "
            "Ask about leadership, conflict resolution and handling setbacks."
        ),
        "advanced": (
            "You are conducting a behavioral interview for a senior position. "
            "Ask about strategy, mentoring and decisions made under pressure."
        ),
    },
    "mixed": {
        "beginner": (
            "You are conducting a mixed technical and behavioral interview for an entry-level position. "
            "Balance fundamentals with questions about learning and teamwork."
        ),
        "intermediate": (
            "You are conducting a mixed interview for a mid-level position. "
            "Combine technical problem-solving with questions about collaboration."
        ),
        "advanced": (
            "You are conducting a mixed interview for a senior position. "
            "Blend deep technical questions with leadership and strategy."
        ),
    },
}

FALLBACK_QUESTIONS: Dict[str, List[str]] = {
    "technical": [
        "Can you walk me through how you would design a simple caching layer?",
        "How would you detect a cycle in a linked list?",
        "Explain the difference between breadth-first and depth-first search.",
        "How do database indexes speed up queries, and what do they cost?",
    ],
    "behavioral": [
        "Tell me about a project that didn't go as planned. How did you handle it?",
        "How do you prioritise tasks when everything seems urgent?",
        "Describe a time you disagreed with a teammate and how it was resolved.",
        "Tell me about something you learned quickly under pressure.",
    ],
    "mixed": [
        "Tell me about a technical decision you made that you would change today.",
        "How would you explain a complex system you built to a non-technical stakeholder?",
        "Describe a bug that took you a long time to find. What did you learn?",
        "What trade-offs did you weigh on the last feature you shipped?",
    ],
}

RESUME_EXCERPT_CHARS = 1500
MAX_REPLY_TOKENS = 300


class InterviewerService:
    """Generates interviewer turns for a session"""

    def __init__(self, llm: Optional[LLMClient] = None):
        self._llm = llm

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    @staticmethod
    def level_for(difficulty: Optional[str]) -> str:
        return LEVELS.get((difficulty or "").lower(), "intermediate")

    def build_system_prompt(
        self, session: InterviewSession, resume: Optional[UserResume] = None
    ) -> str:
        """Interviewer persona plus the job and candidate context"""
        session_type = session.session_type if session.session_type in SYSTEM_PROMPTS else "mixed"
        parts = [SYSTEM_PROMPTS[session_type][self.level_for(session.difficulty)]]
        parts.append(f"The candidate is interviewing for: {session.job_title}.")
        if session.job_description:
            parts.append(f"Job description:\n{session.job_description}")
        if resume is not None and resume.content:
            parts.append(f"Candidate resume (excerpt):\n{resume.content[:RESUME_EXCERPT_CHARS]}")
        parts.append(
            "Ask one question at a time. Briefly acknowledge the candidate's last answer "
            "before moving on, and keep replies under 120 words."
        )
        return "\n\n".join(parts)

    def fallback_question(self, session_type: Optional[str]) -> str:
        questions = FALLBACK_QUESTIONS.get(session_type or "", FALLBACK_QUESTIONS["mixed"])
        return random.choice(questions)

    async def generate_response(
        self,
        session: InterviewSession,
        history: List[Dict[str, str]],
        user_message: str,
        resume: Optional[UserResume] = None,
    ) -> Dict[str, Any]:
        """
        Next interviewer turn

        history: [{"role": "user"|"assistant", "content": ...}] oldest first.
        Returns {"content", "metadata": {"ai_generated", "model", "fallback"}}.
        """
        if not self.llm.is_configured():
            return self._fallback(session)

        messages = [{"role": "system", "content": self.build_system_prompt(session, resume)}]
        messages.extend(history)
        if not history or history[-1].get("content") != user_message:
            messages.append({"role": "user", "content": user_message})

        try:
            content = await self.llm.chat(messages, max_tokens=MAX_REPLY_TOKENS)
        except Exception as exc:
            logger.warning("Interviewer LLM call failed for session {}: {}", session.id, exc)
            return self._fallback(session)

        return {
            "content": content,
            "metadata": {"ai_generated": True, "model": self.llm.model, "fallback": False},
        }

    def _fallback(self, session: InterviewSession) -> Dict[str, Any]:
        return {
            "content": self.fallback_question(session.session_type),
            "metadata": {"ai_generated": True, "model": "fallback", "fallback": True},
        }


_interviewer: Optional[InterviewerService] = None


def get_interviewer() -> InterviewerService:
    """Return the shared InterviewerService"""
    global _interviewer
    if _interviewer is None:
        _interviewer = InterviewerService()
    return _interviewer
