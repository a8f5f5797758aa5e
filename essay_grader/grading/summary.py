"""
Summary generation.

One extra call after all examiners have finished, asking a senior
examiner persona for a short overall assessment and a fixed number of
improvements. Failures degrade the summary; they never fail the request.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import NamedTuple

from essay_grader.config import Settings
from essay_grader.grading.llm_client import LLMClient, LLMError
from essay_grader.grading.prompts import PromptBuilder
from essay_grader.grading.scorer import Unparseable, extract_json_object
from essay_grader.models import ExaminerScore, GradeRequest

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_CHARS = 300


class Summary(NamedTuple):
    """Qualitative overview attached to a grade."""

    summary: str
    improvements: tuple[str, ...]


EMPTY_SUMMARY = Summary(summary="", improvements=())


def parse_summary(reply: str, improvement_count: int) -> Summary:
    """
    Parse a summary reply.

    Args:
        reply: Raw reply text.
        improvement_count: Maximum number of improvements kept.

    Returns:
        Parsed summary, or the first 300 characters of the reply with no
        improvements when no JSON object can be decoded.
    """
    outcome = extract_json_object(reply)
    if isinstance(outcome, Unparseable):
        logger.warning("Summary reply unparseable (%s)", outcome.reason)
        return Summary(summary=reply[:SUMMARY_FALLBACK_CHARS].strip(), improvements=())

    data = outcome.value
    summary = data.get("summary")
    improvements = data.get("improvements")

    if not isinstance(improvements, list):
        improvements = []

    return Summary(
        summary=summary.strip() if isinstance(summary, str) else "",
        improvements=tuple(
            str(item).strip() for item in improvements if item is not None and str(item).strip()
        )[:improvement_count],
    )


class SummaryGenerator:
    """Produces the summary and improvement list for a graded response."""

    def __init__(self, client: LLMClient, settings: Settings):
        self._client = client
        self._settings = settings

    async def generate(
        self, scores: Sequence[ExaminerScore], request: GradeRequest
    ) -> Summary:
        """Best-effort summary; returns ``EMPTY_SUMMARY`` when the call fails."""
        count = self._settings.summary_improvement_count

        try:
            reply = await asyncio.wait_for(
                self._client.complete(
                    system_prompt=PromptBuilder.summary_system_prompt(scores, count),
                    user_prompt=PromptBuilder.summary_user_prompt(request),
                    temperature=self._settings.summary_temperature,
                    max_tokens=self._settings.summary_max_tokens,
                ),
                timeout=self._settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Summary generation timed out")
            return EMPTY_SUMMARY
        except LLMError as e:
            logger.warning("Summary generation error: %s", e)
            return EMPTY_SUMMARY

        return parse_summary(reply, count)
