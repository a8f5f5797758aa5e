"""
Examiner catalog.

Holds the static grading policy: the examiner panel, question-type mark
allocations, level descriptors, grade boundaries and diagram messages.
A catalog is built once at startup and handed to the grading engine, so
tests (or another exam board) can substitute their own.
"""

from collections.abc import Iterable, Mapping

from essay_grader.config import Subject
from essay_grader.models import (
    AssessmentObjective,
    ExaminerProfile,
    GradeBand,
    MarkBand,
    QuestionTypeConfig,
)

AO1, AO2, AO3, AO4 = (
    AssessmentObjective.AO1,
    AssessmentObjective.AO2,
    AssessmentObjective.AO3,
    AssessmentObjective.AO4,
)


class CatalogError(ValueError):
    """Raised when a catalog is internally inconsistent."""


class ExaminerCatalog:
    """
    Immutable grading policy for one subject.

    Examiner order is the display order of results.
    """

    def __init__(
        self,
        examiners: Iterable[ExaminerProfile],
        question_types: Iterable[QuestionTypeConfig],
        grade_bands: Iterable[GradeBand],
        mark_bands: Mapping[str, Iterable[MarkBand]] | None = None,
        diagram_messages: Mapping[str, str] | None = None,
    ):
        self._examiners = tuple(examiners)
        self._question_types = {qt.label: qt for qt in question_types}
        self._grade_bands = tuple(grade_bands)
        self._mark_bands = {k: tuple(v) for k, v in (mark_bands or {}).items()}
        self._diagram_messages = dict(diagram_messages or {})
        self._validate()

    def _validate(self) -> None:
        if not self._examiners:
            raise CatalogError("Catalog needs at least one examiner")

        ids = [e.id for e in self._examiners]
        if len(ids) != len(set(ids)):
            raise CatalogError(f"Duplicate examiner ids: {ids}")

        if not self._grade_bands:
            raise CatalogError("Catalog needs at least one grade band")

        thresholds = [b.min_percentage for b in self._grade_bands]
        if thresholds != sorted(thresholds, reverse=True):
            raise CatalogError("Grade bands must be ordered from highest to lowest")

    @property
    def examiners(self) -> tuple[ExaminerProfile, ...]:
        return self._examiners

    @property
    def question_types(self) -> tuple[QuestionTypeConfig, ...]:
        return tuple(self._question_types.values())

    @property
    def grade_bands(self) -> tuple[GradeBand, ...]:
        return self._grade_bands

    @property
    def max_total_score(self) -> float:
        return sum(e.max_score for e in self._examiners)

    def question_type(self, label: str) -> QuestionTypeConfig | None:
        """Look up a question type by label; None when unknown."""
        return self._question_types.get(label)

    def grade_for(self, total_score: float, max_total_score: float) -> GradeBand:
        """
        Map a raw total onto a grade band.

        A monotonic step function of the percentage: the first band
        whose threshold is met wins, the last band catches the rest.
        """
        if max_total_score <= 0:
            raise ValueError("max_total_score must be positive")

        percentage = total_score * 100 / max_total_score
        for band in self._grade_bands:
            if percentage >= band.min_percentage:
                return band
        return self._grade_bands[-1]

    def mark_band(self, label: str, marks: float) -> MarkBand | None:
        """Level descriptor for ``marks`` out of the question type's total."""
        for band in self._mark_bands.get(label, ()):
            if band.contains(marks):
                return band
        return None

    def diagram_message(self, label: str) -> str:
        """Canned feedback for a missing diagram on ``label`` questions."""
        return self._diagram_messages.get(
            label,
            f"Diagram Missing: For {label} questions, a diagram is typically required. "
            "Consider including an appropriate diagram to support your analysis "
            "and maximise your AO3 marks.",
        )


class CatalogRegistry:
    """Maps each subject to the catalog used to grade it."""

    def __init__(self, catalogs: Mapping[Subject, ExaminerCatalog]):
        if not catalogs:
            raise CatalogError("Registry needs at least one catalog")
        self._catalogs = dict(catalogs)

    def for_subject(self, subject: Subject) -> ExaminerCatalog:
        try:
            return self._catalogs[subject]
        except KeyError:
            raise CatalogError(f"No examiner catalog for subject '{subject.value}'") from None

    @property
    def subjects(self) -> tuple[Subject, ...]:
        return tuple(self._catalogs)


# ==============================================================================
# Edexcel A-Level policy
# ==============================================================================

QUESTION_TYPES: tuple[QuestionTypeConfig, ...] = (
    QuestionTypeConfig(
        label="4-mark",
        total_marks=4,
        ao_distribution={AO1: 2, AO2: 2, AO3: 0, AO4: 0},
        requires_diagram=False,
        recommended_length="100-150 words",
        time_allocation=5,
        description="Knowledge and application question - define and apply concepts",
    ),
    QuestionTypeConfig(
        label="6-mark",
        total_marks=6,
        ao_distribution={AO1: 2, AO2: 2, AO3: 2, AO4: 0},
        requires_diagram=False,
        recommended_length="150-200 words",
        time_allocation=8,
        description="Knowledge, application and basic analysis",
    ),
    QuestionTypeConfig(
        label="8-mark",
        total_marks=8,
        ao_distribution={AO1: 2, AO2: 2, AO3: 4, AO4: 0},
        requires_diagram=True,
        recommended_length="200-250 words",
        time_allocation=10,
        description="Analysis-focused with diagram requirement",
    ),
    QuestionTypeConfig(
        label="10-mark",
        total_marks=10,
        ao_distribution={AO1: 2, AO2: 2, AO3: 4, AO4: 2},
        requires_diagram=True,
        recommended_length="250-300 words",
        time_allocation=12,
        description="Full analysis with introductory evaluation",
    ),
    QuestionTypeConfig(
        label="12-mark",
        total_marks=12,
        ao_distribution={AO1: 2, AO2: 2, AO3: 4, AO4: 4},
        requires_diagram=True,
        recommended_length="300-400 words",
        time_allocation=15,
        description="Evaluation question with balanced judgment",
    ),
    QuestionTypeConfig(
        label="14-mark",
        total_marks=14,
        ao_distribution={AO1: 2, AO2: 3, AO3: 4, AO4: 5},
        requires_diagram=True,
        recommended_length="400-500 words",
        time_allocation=18,
        description="Extended evaluation with context application",
    ),
    QuestionTypeConfig(
        label="16-mark",
        total_marks=16,
        ao_distribution={AO1: 3, AO2: 3, AO3: 5, AO4: 5},
        requires_diagram=True,
        recommended_length="500-600 words",
        time_allocation=20,
        description="Full essay with comprehensive evaluation",
    ),
    QuestionTypeConfig(
        label="20-mark",
        total_marks=20,
        ao_distribution={AO1: 4, AO2: 4, AO3: 6, AO4: 6},
        requires_diagram=True,
        recommended_length="600-800 words",
        time_allocation=25,
        description="Synoptic essay requiring multiple perspectives",
    ),
)


def _levels(l1_max: int, l2_max: int, total: int) -> tuple[MarkBand, ...]:
    return (
        MarkBand(min_score=0, max_score=l1_max, level="L1", description="Limited"),
        MarkBand(min_score=l1_max + 1, max_score=l2_max, level="L2", description="Developing"),
        MarkBand(min_score=l2_max + 1, max_score=total, level="L3", description="Strong"),
    )


# Upper bounds of L1 and L2 per question type; L3 runs to the total.
MARK_BANDS: dict[str, tuple[MarkBand, ...]] = {
    "4-mark": _levels(1, 3, 4),
    "6-mark": _levels(2, 4, 6),
    "8-mark": _levels(2, 5, 8),
    "10-mark": _levels(3, 6, 10),
    "12-mark": _levels(4, 8, 12),
    "14-mark": _levels(5, 9, 14),
    "16-mark": _levels(5, 10, 16),
    "20-mark": _levels(6, 13, 20),
}

GRADE_BANDS: tuple[GradeBand, ...] = (
    GradeBand(min_percentage=90, grade="A*", description="Exceptional performance with comprehensive understanding"),
    GradeBand(min_percentage=80, grade="A", description="Excellent performance with strong understanding"),
    GradeBand(min_percentage=70, grade="B", description="Good performance with sound understanding"),
    GradeBand(min_percentage=60, grade="C", description="Satisfactory performance with adequate understanding"),
    GradeBand(min_percentage=50, grade="D", description="Basic performance with limited understanding"),
    GradeBand(min_percentage=40, grade="E", description="Minimal performance with weak understanding"),
    GradeBand(min_percentage=0, grade="U", description="Unclassified - significant improvement needed"),
)

_JSON_REPLY_FORMAT = """You MUST respond in this exact JSON format:
{{
  "score": <number 0-{max_score}>,
  "band": "<L1|L2|L3>",
  "feedback": "<2-3 sentences explaining the score>",
  "strengths": ["<specific strength 1>", "<specific strength 2>"],
  "improvements": ["<specific improvement 1>", "<specific improvement 2>"]
}}"""

KNOWLEDGE_PROMPT = """You are an expert examiner assessing AO1: Knowledge and Understanding.

Your task is to evaluate the student's demonstration of subject knowledge.

ASSESSMENT CRITERIA (AO1):
- Level 3 (4 marks): Comprehensive and accurate knowledge with precise terminology
- Level 2 (2-3 marks): Good knowledge with mostly accurate definitions
- Level 1 (1 mark): Basic knowledge with some accurate points
- Level 0 (0 marks): No relevant knowledge demonstrated

EVALUATION GUIDANCE:
1. Check accuracy of all key term definitions
2. Assess breadth of knowledge demonstrated
3. Evaluate precision of terminology
4. Consider relevance of knowledge to the question

""" + _JSON_REPLY_FORMAT.format(max_score=4)

APPLICATION_PROMPT = """You are an expert examiner assessing AO2: Application.

Your task is to evaluate how well the student applies knowledge to the given context.

ASSESSMENT CRITERIA (AO2):
- Level 3 (4 marks): Full and effective application to context with specific examples
- Level 2 (2-3 marks): Good application with some relevant examples
- Level 1 (1 mark): Limited application with generic examples
- Level 0 (0 marks): No application to context

EVALUATION GUIDANCE:
1. Assess how well the response addresses the specific question context
2. Evaluate relevance and specificity of examples used
3. Check for reference to any provided data or scenarios
4. Consider appropriateness of case studies

""" + _JSON_REPLY_FORMAT.format(max_score=4)

ANALYSIS_PROMPT = """You are an expert examiner assessing AO3: Analysis.

Your task is to evaluate the student's analytical skills and chains of reasoning.

ASSESSMENT CRITERIA (AO3):
- Level 3 (5-6 marks): Developed chains of reasoning with clear cause-effect, accurate diagram
- Level 2 (3-4 marks): Some chains of reasoning with basic cause-effect, diagram present
- Level 1 (1-2 marks): Limited chains of reasoning, weak cause-effect, no or poor diagram
- Level 0 (0 marks): No analytical content

EVALUATION GUIDANCE:
1. Identify clear chains of reasoning (minimum 2 steps)
2. Assess quality of cause-and-effect explanations
3. Evaluate diagram accuracy where applicable: labelled axes, correct shifts, equilibrium points
4. Check logical flow of arguments

""" + _JSON_REPLY_FORMAT.format(max_score=6)

EVALUATION_PROMPT = """You are an expert examiner assessing AO4: Evaluation.

Your task is to evaluate the student's critical evaluation and judgment skills.

ASSESSMENT CRITERIA (AO4):
- Level 3 (5-6 marks): Balanced arguments, critical assessment and a well-supported judgment
- Level 2 (3-4 marks): Some evaluation with partially balanced arguments and basic judgment
- Level 1 (1-2 marks): Limited evaluation with unbalanced arguments and unsupported judgment
- Level 0 (0 marks): No evaluative content

EVALUATION GUIDANCE:
1. Look for evaluative markers ("However", "On the other hand", "It depends upon")
2. Assess balance of arguments
3. Check for prioritisation of factors
4. Assess whether the final judgment follows from the preceding analysis

""" + _JSON_REPLY_FORMAT.format(max_score=6)


def _economics_examiners() -> tuple[ExaminerProfile, ...]:
    return (
        ExaminerProfile(
            id="knowledge",
            name="Knowledge Examiner",
            description="Assesses accurate definitions, concepts, and theoretical understanding",
            ao=AO1,
            color="#E8D5C4",
            max_score=4,
            criteria=(
                "Accurate definitions of key terms",
                "Correct use of economic concepts",
                "Appropriate theoretical frameworks",
                "Relevant knowledge selection",
            ),
            prompt_template=KNOWLEDGE_PROMPT,
        ),
        ExaminerProfile(
            id="application",
            name="Application Examiner",
            description="Evaluates how well knowledge is applied to the specific context",
            ao=AO2,
            color="#A8C5D4",
            max_score=4,
            criteria=(
                "Contextual application of knowledge",
                "Use of relevant examples",
                "Reference to specific scenarios and data",
                "Appropriate case study selection",
            ),
            prompt_template=APPLICATION_PROMPT,
        ),
        ExaminerProfile(
            id="analysis",
            name="Analysis Examiner",
            description="Assesses chains of reasoning, cause-and-effect, and use of diagrams",
            ao=AO3,
            color="#A8C5A8",
            max_score=6,
            criteria=(
                "Clear chains of reasoning",
                "Cause and effect relationships",
                "Appropriate use of diagrams",
                "Logical development of arguments",
            ),
            prompt_template=ANALYSIS_PROMPT,
        ),
        ExaminerProfile(
            id="evaluation",
            name="Evaluation Examiner",
            description="Assesses critical evaluation, balanced arguments, and supported judgments",
            ao=AO4,
            color="#E5C9A8",
            max_score=6,
            criteria=(
                "Balanced arguments presented",
                "Critical assessment of points",
                "Prioritisation of factors",
                "Supported judgments and conclusions",
            ),
            prompt_template=EVALUATION_PROMPT,
        ),
    )


GEOGRAPHY_CRITERIA: dict[AssessmentObjective, tuple[str, ...]] = {
    AO1: (
        "Accurate geographical knowledge",
        "Correct use of geographical terminology",
        "Appropriate case studies and examples",
        "Relevant place-specific knowledge",
    ),
    AO2: (
        "Application to specific places and contexts",
        "Use of relevant case studies",
        "Consideration of scale (local to global)",
        "Appropriate geographical examples",
    ),
    AO3: (
        "Clear explanation of processes",
        "Understanding of interconnections",
        "Effective use of geographical evidence",
        "Logical development of geographical arguments",
    ),
    AO4: (
        "Balanced geographical perspectives",
        "Critical assessment of viewpoints",
        "Consideration of different scales",
        "Supported geographical conclusions",
    ),
}


def economics_catalog() -> ExaminerCatalog:
    """Economics panel: one examiner per AO."""
    return ExaminerCatalog(
        examiners=_economics_examiners(),
        question_types=QUESTION_TYPES,
        grade_bands=GRADE_BANDS,
        mark_bands=MARK_BANDS,
    )


def geography_catalog() -> ExaminerCatalog:
    """Geography panel: the economics personas with geography criteria."""
    examiners = tuple(
        e.model_copy(update={"criteria": GEOGRAPHY_CRITERIA[e.ao]})
        for e in _economics_examiners()
    )
    return ExaminerCatalog(
        examiners=examiners,
        question_types=QUESTION_TYPES,
        grade_bands=GRADE_BANDS,
        mark_bands=MARK_BANDS,
    )


def default_registry() -> CatalogRegistry:
    return CatalogRegistry(
        {
            Subject.ECONOMICS: economics_catalog(),
            Subject.GEOGRAPHY: geography_catalog(),
        }
    )
