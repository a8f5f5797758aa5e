"""
Prompt builder for examiner and summary calls.

Examiner prompts carry the full response; the summary prompt only carries
the per-AO marks, a preview of the question and the response length, so
its size does not grow with the essay.
"""

from collections.abc import Sequence

from essay_grader.models import (
    ExaminerProfile,
    ExaminerScore,
    GradeRequest,
    QuestionTypeConfig,
)

DIAGRAM_PROVIDED = "DIAGRAM: Student has provided a diagram."
DIAGRAM_MISSING = "DIAGRAM: No diagram provided."

QUESTION_PREVIEW_CHARS = 200


class PromptBuilder:
    """Builds the prompts sent to the chat-completion API."""

    @staticmethod
    def examiner_system_prompt(
        profile: ExaminerProfile,
        request: GradeRequest,
        question_type: QuestionTypeConfig,
    ) -> str:
        """System prompt for one examiner: persona plus question context."""
        return profile.build_system_prompt(request.unit, question_type, request.has_diagram)

    @staticmethod
    def examiner_user_prompt(request: GradeRequest) -> str:
        """
        Build the user message shared by all examiners.

        Args:
            request: The grading request.

        Returns:
            Question, optional context material, the response and the
            diagram statement.
        """
        sections = [f"Question: {request.question}"]

        if request.context_data:
            sections.append(f"CONTEXT/DATA PROVIDED:\n{request.context_data}")

        if request.extract_info:
            sections.append(f"EXTRACT INFORMATION:\n{request.extract_info}")

        sections.append(f"Student Response:\n{request.essay}")
        sections.append(DIAGRAM_PROVIDED if request.has_diagram else DIAGRAM_MISSING)

        return "\n\n".join(sections)

    @staticmethod
    def summary_system_prompt(scores: Sequence[ExaminerScore], improvement_count: int) -> str:
        """System prompt for the senior-examiner summary."""
        score_lines = "\n".join(
            f"{s.ao.value}: {_format_mark(s.score)}/{_format_mark(s.max_score)}" for s in scores
        )
        improvement_slots = ", ".join(
            f'"specific improvement {i}"' for i in range(1, improvement_count + 1)
        )

        return f"""You are a senior examiner. Based on these scores:
{score_lines}

Provide a brief summary and {improvement_count} specific improvements. JSON format:
{{
  "summary": "2-3 sentence overall assessment",
  "improvements": [{improvement_slots}]
}}"""

    @staticmethod
    def summary_user_prompt(request: GradeRequest) -> str:
        """Question preview and response length, never the full response."""
        preview = request.question[:QUESTION_PREVIEW_CHARS]
        return f"Question: {preview}...\nResponse length: {len(request.essay)} chars"


def _format_mark(value: float) -> str:
    """Render 4.0 as "4" and 3.5 as "3.5"."""
    return f"{value:g}"
