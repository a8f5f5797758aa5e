"""
Grading engine - the core orchestrator.

Fans a request out to every examiner in the subject's catalog with
bounded concurrency, aggregates the scores, then attaches the summary
and diagram feedback.
"""

import asyncio
import logging
import time

from essay_grader.catalog import CatalogRegistry, ExaminerCatalog, default_registry
from essay_grader.config import Settings, get_settings
from essay_grader.grading.aggregator import aggregate
from essay_grader.grading.diagram import diagram_feedback
from essay_grader.grading.examiner import ExaminerRunner
from essay_grader.grading.llm_client import LLMClient
from essay_grader.grading.summary import SummaryGenerator
from essay_grader.models import (
    ExaminerProfile,
    ExaminerScore,
    GradeRequest,
    GradeResult,
    QuestionTypeConfig,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the AI credential is not configured."""


class UnknownQuestionTypeError(ValueError):
    """Raised when a question type is not in the examiner catalog."""

    def __init__(self, label: str, known: list[str]):
        self.label = label
        self.known = known
        super().__init__(f"Invalid question type: {label}")


class GradingEngine:
    """
    Main grading engine.

    Every request yields exactly one ``ExaminerScore`` per catalog
    examiner, in catalog order, whatever the upstream API does.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: CatalogRegistry | None = None,
        client: LLMClient | None = None,
    ):
        """
        Initialize the grading engine.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            registry: Examiner catalogs per subject. Uses the Edexcel panels if not provided.
            client: Chat-completion client. Built from settings if not provided.
        """
        self._settings = settings or get_settings()
        self._registry = registry or default_registry()
        self._client = client or LLMClient(self._settings)
        self._examiner_runner = ExaminerRunner(self._client, self._settings)
        self._summary_generator = SummaryGenerator(self._client, self._settings)

    @property
    def registry(self) -> CatalogRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        return self._settings

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no AI credential is configured.
        """
        if not self._settings.ai_configured:
            raise ConfigurationError("AI service not configured")

    @staticmethod
    def resolve_question_type(catalog: ExaminerCatalog, label: str) -> QuestionTypeConfig:
        """
        Raises:
            UnknownQuestionTypeError: If ``label`` is not configured.
        """
        config = catalog.question_type(label)
        if config is None:
            raise UnknownQuestionTypeError(label, [qt.label for qt in catalog.question_types])
        return config

    async def grade(self, request: GradeRequest) -> GradeResult:
        """
        Grade a response.

        Args:
            request: The validated request.

        Returns:
            The complete result; degraded entries are flagged, not omitted.

        Raises:
            ConfigurationError: If no AI credential is configured.
            UnknownQuestionTypeError: If the question type is unknown.
        """
        self.ensure_configured()
        catalog = self._registry.for_subject(request.subject)
        question_type = self.resolve_question_type(catalog, request.question_type)

        started = time.perf_counter()
        scores = await self._run_examiners(catalog.examiners, request, question_type)
        totals = aggregate(scores, catalog, question_type.label)
        summary = await self._summary_generator.generate(scores, request)

        result = GradeResult(
            overall_score=totals.overall_score,
            percentage=totals.percentage,
            ums=totals.ums,
            grade=totals.grade,
            grade_description=totals.grade_description,
            level=totals.level,
            examiners=tuple(scores),
            summary=summary.summary,
            improvements=summary.improvements,
            question_type=question_type.label,
            unit=request.unit,
            diagram_feedback=diagram_feedback(question_type, request.has_diagram, catalog),
            word_count=request.word_count,
            time_estimate=question_type.time_estimate,
        )

        logger.info(
            "Graded %s %s response: %.1f/10 (%s), %d/%d examiners degraded, %.2fs",
            request.subject.value,
            question_type.label,
            result.overall_score,
            result.grade,
            result.degraded_examiners,
            len(scores),
            time.perf_counter() - started,
        )
        return result

    async def _run_examiners(
        self,
        examiners: tuple[ExaminerProfile, ...],
        request: GradeRequest,
        question_type: QuestionTypeConfig,
    ) -> list[ExaminerScore]:
        """Run all examiners concurrently; results keep catalog order."""
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_examiners)

        async def bounded(profile: ExaminerProfile) -> ExaminerScore:
            async with semaphore:
                return await self._examiner_runner.run(profile, request, question_type)

        return list(await asyncio.gather(*(bounded(profile) for profile in examiners)))

    async def health_check(self) -> bool:
        """
        Check if the grading engine is operational.

        Returns:
            True if the AI credential is set and the API is reachable.
        """
        if not self._settings.ai_configured:
            return False
        return await self._client.health_check()

    async def aclose(self) -> None:
        """Close the chat-completion client's connections."""
        await self._client.aclose()
