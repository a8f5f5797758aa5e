"""
Per-examiner invocation.

One examiner, one chat-completion call, exactly one ``ExaminerScore``.
Transport errors and deadline overruns are converted to the transport
fallback here, so a caller never sees an exception from an examiner.
"""

import asyncio
import logging

from essay_grader.config import Settings
from essay_grader.grading.llm_client import LLMClient, LLMError
from essay_grader.grading.prompts import PromptBuilder
from essay_grader.grading.scorer import ExaminerResponseParser
from essay_grader.models import (
    ExaminerProfile,
    ExaminerScore,
    GradeRequest,
    QuestionTypeConfig,
)

logger = logging.getLogger(__name__)


class ExaminerRunner:
    """Runs a single examiner against a request under a deadline."""

    def __init__(self, client: LLMClient, settings: Settings):
        self._client = client
        self._settings = settings
        self._parser = ExaminerResponseParser(settings.fallback_score)

    async def run(
        self,
        profile: ExaminerProfile,
        request: GradeRequest,
        question_type: QuestionTypeConfig,
    ) -> ExaminerScore:
        """
        Score ``request`` with one examiner.

        Args:
            profile: The examiner persona.
            request: The validated grading request.
            question_type: Resolved question-type configuration.

        Returns:
            The examiner's score; a degraded fallback on any failure.
        """
        system_prompt = PromptBuilder.examiner_system_prompt(profile, request, question_type)
        user_prompt = PromptBuilder.examiner_user_prompt(request)

        try:
            reply = await asyncio.wait_for(
                self._client.complete(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=self._settings.examiner_temperature,
                    max_tokens=self._settings.examiner_max_tokens,
                ),
                timeout=self._settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Examiner %s timed out after %.1fs",
                profile.name,
                self._settings.llm_timeout_seconds,
            )
            return self._parser.transport_fallback(profile)
        except LLMError as e:
            logger.warning("Examiner %s error: %s", profile.name, e, exc_info=e.cause is not None)
            return self._parser.transport_fallback(profile)

        return self._parser.parse(reply, profile)
