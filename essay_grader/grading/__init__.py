"""
Grading Pipeline Module.

Per-examiner scoring, aggregation, summary generation and diagram policy,
orchestrated by ``GradingEngine``.
"""

from essay_grader.grading.aggregator import (
    Aggregate,
    aggregate,
    overall_score,
    percentage_of,
    round_one_decimal,
    ums_score,
)
from essay_grader.grading.diagram import diagram_feedback
from essay_grader.grading.engine import ConfigurationError, GradingEngine, UnknownQuestionTypeError
from essay_grader.grading.examiner import ExaminerRunner
from essay_grader.grading.llm_client import LLMClient, LLMError
from essay_grader.grading.prompts import PromptBuilder
from essay_grader.grading.scorer import (
    ExaminerResponseParser,
    Parsed,
    Unparseable,
    extract_json_object,
)
from essay_grader.grading.summary import Summary, SummaryGenerator

__all__ = [
    "Aggregate",
    "ConfigurationError",
    "ExaminerResponseParser",
    "ExaminerRunner",
    "GradingEngine",
    "LLMClient",
    "LLMError",
    "Parsed",
    "PromptBuilder",
    "Summary",
    "SummaryGenerator",
    "UnknownQuestionTypeError",
    "Unparseable",
    "aggregate",
    "diagram_feedback",
    "extract_json_object",
    "overall_score",
    "percentage_of",
    "round_one_decimal",
    "ums_score",
]
