"""
Interviewer service tests
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from mockmate.models.interview import InterviewSession
from mockmate.models.resume import UserResume
from mockmate.services.interviewer import FALLBACK_QUESTIONS, InterviewerService


def make_session(**overrides) -> InterviewSession:
    data = {
        "id": "session-1",
        "user_id": "user-1",
        "job_title": "Data Engineer",
        "job_description": "Build batch pipelines with Spark",
        "difficulty": "advanced",
        "session_type": "technical",
        "status": "active",
        **overrides,
    }
    return InterviewSession(**data)


def make_llm(configured: bool = True, reply: str = "Tell me about partitioning.") -> MagicMock:
    llm = MagicMock()
    llm.model = "gpt-test"
    llm.is_configured.return_value = configured
    llm.chat = AsyncMock(return_value=reply)
    return llm


def test_system_prompt_includes_context():
    service = InterviewerService(llm=make_llm())
    resume = UserResume(user_id="user-1", title="CV", content="x" * 2000)

    prompt = service.build_system_prompt(make_session(), resume)
    assert "Data Engineer" in prompt
    assert "Build batch pipelines with Spark" in prompt
    assert "x" * 1500 in prompt
    assert "x" * 1501 not in prompt


def test_unknown_difficulty_maps_to_intermediate():
    assert InterviewerService.level_for("wizard") == "intermediate"
    assert InterviewerService.level_for("expert") == "advanced"
    assert InterviewerService.level_for("EASY") == "beginner"


@pytest.mark.asyncio
async def test_fallback_without_llm():
    service = InterviewerService(llm=make_llm(configured=False))

    reply = await service.generate_response(make_session(session_type="behavioral"), [], "Hello")
    assert reply["content"] in FALLBACK_QUESTIONS["behavioral"]
    assert reply["metadata"] == {"ai_generated": True, "model": "fallback", "fallback": True}


@pytest.mark.asyncio
async def test_llm_reply():
    llm = make_llm()
    service = InterviewerService(llm=llm)
    history = [
        {"role": "assistant", "content": "Why Spark?"},
        {"role": "user", "content": "It scales."},
    ]

    reply = await service.generate_response(make_session(), history, "It scales.")
    assert reply["content"] == "Tell me about partitioning."
    assert reply["metadata"]["model"] == "gpt-test"
    assert reply["metadata"]["fallback"] is False

    messages = llm.chat.call_args.args[0]
    assert messages[0]["role"] == "system"
    # The latest answer is already the last history entry
    assert messages[1:] == history


@pytest.mark.asyncio
async def test_llm_failure_falls_back():
    llm = make_llm()
    llm.chat.side_effect = RuntimeError("upstream timeout")
    service = InterviewerService(llm=llm)

    reply = await service.generate_response(make_session(session_type="mixed"), [], "Hi")
    assert reply["metadata"]["fallback"] is True
    assert reply["content"] in FALLBACK_QUESTIONS["mixed"]
