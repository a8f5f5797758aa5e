"""
Pydantic models for the Essay Grader service.

These models define the schemas for:
- Examiner profiles and question-type policy (static configuration)
- The inbound grading request
- Per-examiner scores and the aggregate grading result

Wire models serialise with camelCase aliases so the JSON shape matches
what the web client renders.
"""

import math
from enum import Enum
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from essay_grader.config import Subject, UnitCode


class AssessmentObjective(str, Enum):
    """Exam-board skill dimensions, one per examiner."""

    AO1 = "AO1"  # Knowledge and understanding
    AO2 = "AO2"  # Application
    AO3 = "AO3"  # Analysis
    AO4 = "AO4"  # Evaluation


class FailureReason(str, Enum):
    """Why an examiner score is a fallback rather than a measurement."""

    NONE = "none"
    TRANSPORT = "transport"
    PARSE = "parse"


class WireModel(BaseModel):
    """Base for models that cross the HTTP boundary."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ==============================================================================
# Static Configuration Models
# ==============================================================================


class QuestionTypeConfig(WireModel):
    """Mark allocation and diagram policy for one question type (e.g. "14-mark")."""

    label: str = Field(..., min_length=1)
    total_marks: int = Field(..., gt=0)
    ao_distribution: dict[AssessmentObjective, int]
    requires_diagram: bool = False
    recommended_length: str = ""
    time_allocation: int = Field(default=0, ge=0, description="Minutes")
    description: str = ""

    def marks_for(self, ao: AssessmentObjective) -> int:
        """Marks this question type allocates to ``ao`` (0 if not assessed)."""
        return self.ao_distribution.get(ao, 0)

    @property
    def time_estimate(self) -> str | None:
        if not self.time_allocation:
            return None
        return f"{self.time_allocation} minutes recommended"


class MarkBand(WireModel):
    """A level descriptor covering an inclusive range of raw marks."""

    min_score: float = Field(..., ge=0)
    max_score: float = Field(..., ge=0)
    level: str
    description: str
    characteristics: tuple[str, ...] = ()

    def contains(self, score: float) -> bool:
        return self.min_score <= score <= self.max_score


class GradeBand(WireModel):
    """Minimum percentage required for a letter grade."""

    min_percentage: float = Field(..., ge=0, le=100)
    grade: str = Field(..., min_length=1)
    description: str = ""


class ExaminerProfile(WireModel):
    """
    One examiner persona bound to a single Assessment Objective.

    The prompt template is the fixed persona text; the question context
    is appended per request by ``build_system_prompt``.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    ao: AssessmentObjective
    color: str = Field(default="#CCCCCC", description="Presentation only")
    max_score: float = Field(..., gt=0)
    criteria: tuple[str, ...] = ()
    prompt_template: str = Field(..., min_length=1)

    def build_system_prompt(
        self,
        unit: UnitCode,
        question_type: QuestionTypeConfig,
        has_diagram: bool,
    ) -> str:
        """
        Build the system prompt for one request.

        Args:
            unit: Examination unit of the question.
            question_type: Resolved question-type configuration.
            has_diagram: Whether the candidate supplied a diagram.

        Returns:
            The persona template followed by the question context block.
        """
        ao_marks = question_type.marks_for(self.ao)
        if ao_marks:
            focus = f"{self.ao.value} (Maximum {ao_marks} marks for this question type)"
        else:
            focus = f"{self.ao.value} (not separately credited in this question type)"

        criteria_lines = "\n".join(f"- {c}" for c in self.criteria)
        criteria_block = f"\n\nFOCUS CRITERIA:\n{criteria_lines}" if self.criteria else ""

        return f"""{self.prompt_template}{criteria_block}

QUESTION CONTEXT:
- Unit: {unit.value}
- Question Type: {question_type.label} ({question_type.total_marks} marks total)
- Your AO Focus: {focus}
- Diagram Required: {"Yes" if question_type.requires_diagram else "No"}
- Diagram Provided: {"Yes" if has_diagram else "No"}

Remember to be strict but fair in your assessment. Apply the mark scheme precisely."""


# ==============================================================================
# Request Model
# ==============================================================================


class GradeRequest(WireModel):
    """
    A single grading request.

    ``question_type`` is kept as a plain label here; it is resolved
    against the examiner catalog by the engine so the catalog can be
    swapped without touching the request schema.
    """

    question: str = Field(..., min_length=1, max_length=2000)
    essay: str = Field(..., min_length=1, max_length=10000)
    subject: Subject
    unit: UnitCode = UnitCode.WEC11
    question_type: str = Field(default="14-mark", min_length=1, max_length=32)
    has_diagram: StrictBool = False
    context_data: str | None = Field(default=None, max_length=5000)
    extract_info: str | None = Field(default=None, max_length=5000)

    @field_validator("question", "essay")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        """Reject whitespace-only text."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @property
    def word_count(self) -> int:
        """Whitespace-separated words in the response."""
        return len(self.essay.split())


# ==============================================================================
# Result Models
# ==============================================================================


class ExaminerScore(WireModel):
    """
    The result of one examiner for one request.

    Scores are clamped by the parser before construction; the validator
    here only rejects anything the parser let through.
    """

    examiner_id: str
    examiner_name: str
    score: float
    max_score: float = Field(..., gt=0)
    feedback: str
    criteria: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    band: str = ""
    ao: AssessmentObjective
    color: str
    degraded: bool = False
    failure_reason: FailureReason = FailureReason.NONE

    @model_validator(mode="after")
    def validate_score_range(self) -> "ExaminerScore":
        """Ensure 0 <= score <= max_score."""
        if math.isnan(self.score) or not 0 <= self.score <= self.max_score:
            raise ValueError(
                f"Score ({self.score}) must be between 0 and max score ({self.max_score})"
            )
        if self.degraded == (self.failure_reason is FailureReason.NONE):
            raise ValueError("degraded must be set exactly when a failure reason is given")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        """Score as a percentage of the examiner's maximum."""
        return self.score / self.max_score * 100

    @computed_field(alias="improvementPriority")  # type: ignore[prop-decorator]
    @property
    def improvement_priority(self) -> Literal["high", "medium", "low"]:
        """How urgently this objective needs work: below 50% high, below 75% medium."""
        if self.percentage < 50:
            return "high"
        if self.percentage < 75:
            return "medium"
        return "low"


class GradeResult(WireModel):
    """Complete grading result for one response."""

    overall_score: float = Field(..., ge=0, le=10)
    percentage: int = Field(..., ge=0, le=100)
    ums: int = Field(..., ge=0)
    grade: str
    grade_description: str = ""
    level: str | None = None
    examiners: tuple[ExaminerScore, ...] = Field(..., min_length=1)
    summary: str = ""
    improvements: tuple[str, ...] = ()
    question_type: str
    unit: UnitCode
    diagram_feedback: str | None = None
    word_count: int = Field(..., ge=0)
    time_estimate: str | None = None

    @computed_field(alias="degradedExaminers")  # type: ignore[prop-decorator]
    @property
    def degraded_examiners(self) -> int:
        """Number of examiner entries produced by a fallback path."""
        return sum(1 for e in self.examiners if e.degraded)

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the JSON body returned to clients."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
