"""Diagram policy: canned feedback when a required diagram is missing."""

from essay_grader.catalog import ExaminerCatalog
from essay_grader.models import QuestionTypeConfig


def diagram_feedback(
    question_type: QuestionTypeConfig,
    has_diagram: bool,
    catalog: ExaminerCatalog,
) -> str | None:
    """Return the missing-diagram message, or None when no diagram is owed."""
    if question_type.requires_diagram and not has_diagram:
        return catalog.diagram_message(question_type.label)
    return None
