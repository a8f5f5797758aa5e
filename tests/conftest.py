"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules. No test talks to a
real chat-completion endpoint: the engine is given ``FakeLLMClient``.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Any

import pytest

from essay_grader.catalog import default_registry, economics_catalog
from essay_grader.config import Settings, Subject, UnitCode
from essay_grader.grading import GradingEngine
from essay_grader.models import (
    AssessmentObjective,
    ExaminerProfile,
    GradeRequest,
    QuestionTypeConfig,
)

_AO_FOCUS = re.compile(r"Your AO Focus: (AO\d)")

SUMMARY = "summary"

AO_ORDER = [
    AssessmentObjective.AO1,
    AssessmentObjective.AO2,
    AssessmentObjective.AO3,
    AssessmentObjective.AO4,
]


# ==============================================================================
# Fake LLM Client
# ==============================================================================


def examiner_reply(score: Any, **extra: Any) -> str:
    """An examiner reply wrapped in prose, the way models tend to answer."""
    payload = {
        "score": score,
        "band": "L2",
        "feedback": f"Scored {score}.",
        "strengths": ["Clear definitions"],
        "improvements": ["Use more data"],
    }
    payload.update(extra)
    return f"Here is my assessment:\n{json.dumps(payload)}\nThanks."


class FakeLLMClient:
    """
    Stands in for ``LLMClient``.

    Replies are keyed by AO value ("AO1".."AO4") or ``SUMMARY``. A value
    that is an exception is raised instead of returned; ``delays`` holds
    per-key sleeps in seconds.
    """

    def __init__(
        self,
        replies: dict[str, Any] | None = None,
        delays: dict[str, float] | None = None,
    ):
        self.replies: dict[str, Any] = {
            "AO1": examiner_reply(3),
            "AO2": examiner_reply(3),
            "AO3": examiner_reply(4),
            "AO4": examiner_reply(4),
            SUMMARY: json.dumps(
                {
                    "summary": "A solid answer with room for deeper evaluation.",
                    "improvements": ["Add a diagram", "Use data", "Judge", "Extra"],
                }
            ),
        }
        self.replies.update(replies or {})
        self.delays = delays or {}
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        key = self.key_for(system_prompt)
        self.calls.append(
            {
                "key": key,
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(key, 0))
        finally:
            self.in_flight -= 1

        reply = self.replies[key]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def health_check(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    @staticmethod
    def key_for(system_prompt: str) -> str:
        if "senior examiner" in system_prompt:
            return SUMMARY
        match = _AO_FOCUS.search(system_prompt)
        assert match, "examiner prompt without an AO focus line"
        return match.group(1)

    def calls_for(self, key: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["key"] == key]


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with mocked values."""
    return Settings(
        ai_api_key="test-api-key-for-testing",
        ai_base_url="https://test.api.local/v1/",
        ai_model="test-model",
        llm_timeout_seconds=2.0,
        llm_max_retries=0,
        max_concurrent_examiners=4,
        auth_tokens="test-token:user-123456789,other-token:user-2",
        rate_limit_max_requests=5,
        rate_limit_window_seconds=60,
        log_level="DEBUG",
    )


@pytest.fixture
def unconfigured_settings(test_settings: Settings) -> Settings:
    """Settings without an AI credential."""
    return test_settings.model_copy(update={"ai_api_key": None})


# ==============================================================================
# Catalog Fixtures
# ==============================================================================


@pytest.fixture
def catalog():
    return economics_catalog()


@pytest.fixture
def knowledge_examiner(catalog) -> ExaminerProfile:
    return catalog.examiners[0]


@pytest.fixture
def analysis_examiner(catalog) -> ExaminerProfile:
    return catalog.examiners[2]


@pytest.fixture
def fourteen_mark(catalog) -> QuestionTypeConfig:
    return catalog.question_type("14-mark")


# ==============================================================================
# Request Fixtures
# ==============================================================================


@pytest.fixture
def sample_essay() -> str:
    """Sample candidate response."""
    return """
A minimum wage is a legally enforced price floor set above the market
equilibrium wage. As shown on the diagram, setting the wage at W1 raises
the quantity of labour supplied to Q3 while firms reduce the quantity of
labour demanded to Q1, creating excess supply of labour (unemployment)
of Q3 - Q1.

However, the size of the effect depends upon the elasticity of demand for
labour. In the UK, the Low Pay Commission found little evidence of job
losses after the 1999 introduction of the National Minimum Wage, which
suggests demand for low-skilled labour is relatively inelastic.

Overall, a moderate minimum wage is likely to reduce in-work poverty with
limited unemployment, but a large increase could cause significant job
losses, particularly among young workers.
"""


@pytest.fixture
def sample_request(sample_essay: str) -> GradeRequest:
    return GradeRequest(
        question="Evaluate the likely effects of an increase in the national minimum wage.",
        essay=sample_essay,
        subject=Subject.ECONOMICS,
        unit=UnitCode.WEC11,
        question_type="14-mark",
        has_diagram=True,
    )


@pytest.fixture
def sample_payload(sample_essay: str) -> dict[str, Any]:
    """The same request as it arrives over HTTP."""
    return {
        "question": "Evaluate the likely effects of an increase in the national minimum wage.",
        "essay": sample_essay,
        "subject": "economics",
        "unit": "WEC11",
        "questionType": "14-mark",
        "hasDiagram": True,
    }


# ==============================================================================
# Engine Fixtures
# ==============================================================================


@pytest.fixture
def fake_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def engine(test_settings: Settings, fake_client: FakeLLMClient) -> GradingEngine:
    return GradingEngine(test_settings, registry=default_registry(), client=fake_client)


# ==============================================================================
# File Fixtures
# ==============================================================================


@pytest.fixture
def essay_file(tmp_path: Path, sample_essay: str) -> Path:
    file_path = tmp_path / "essay.txt"
    file_path.write_text(sample_essay, encoding="utf-8")
    return file_path

