"""
Response parser and scorer for examiner replies.

Examiner replies are free text that should contain a JSON object. The
parser locates and decodes that object without raising, sanitises the
score, and falls back to a degraded score when the reply is unusable.
Every score leaving this module is clamped to the examiner's range.
"""

import json
import logging
import math
import re
from typing import Any, NamedTuple

from essay_grader.models import ExaminerProfile, ExaminerScore, FailureReason

logger = logging.getLogger(__name__)

FEEDBACK_FALLBACK_CHARS = 500
DEFAULT_FEEDBACK = "Analysis completed"
TRANSPORT_FEEDBACK = "Unable to complete analysis - please try again"
PARSE_FALLBACK_CRITERIA = ("Response attempted",)
PARSE_FALLBACK_IMPROVEMENTS = ("Review feedback above",)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class Parsed(NamedTuple):
    """A JSON object decoded from a reply."""

    value: dict[str, Any]


class Unparseable(NamedTuple):
    """A reply with no decodable JSON object."""

    raw_text: str
    reason: str


ParseOutcome = Parsed | Unparseable


def extract_json_object(text: str | None) -> ParseOutcome:
    """
    Find and decode the JSON object embedded in a reply.

    Candidates are tried in order: a fenced ```json block, the first
    balanced ``{...}`` span, then everything from the first ``{`` to the
    last ``}``. Never raises.

    Args:
        text: Raw reply text.

    Returns:
        ``Parsed`` with the decoded object, or ``Unparseable`` with the
        raw text and the reason the last candidate was rejected.
    """
    raw = text or ""
    if not raw.strip():
        return Unparseable(raw, "empty reply")

    candidates: list[str] = []

    fenced = _FENCED_BLOCK.search(raw)
    if fenced:
        candidates.append(fenced.group(1).strip())

    start = raw.find("{")
    if start != -1:
        balanced = _balanced_object(raw, start)
        if balanced is not None:
            candidates.append(balanced)
        end = raw.rfind("}")
        if end > start:
            candidates.append(raw[start : end + 1])

    if not candidates:
        return Unparseable(raw, "no JSON object found")

    reason = "no JSON object found"
    for candidate in dict.fromkeys(candidates):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as e:
            reason = f"invalid JSON: {e.msg}"
            continue
        if isinstance(value, dict):
            return Parsed(value)
        reason = "JSON value is not an object"

    return Unparseable(raw, reason)


def _balanced_object(text: str, start: int) -> str | None:
    """Return the ``{...}`` span opening at ``start``, ignoring braces inside strings."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def coerce_score(value: Any) -> float | None:
    """
    Interpret an examiner-supplied score.

    Accepts finite numbers and numeric strings; booleans, NaN, infinities
    and anything else yield None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def clamp_score(value: float, max_score: float) -> float:
    """Clamp ``value`` into ``[0, max_score]``."""
    # 0.0 first so a reported -0 comes back as 0.0
    return min(max(0.0, value), max_score)


def band_for(score: float, max_score: float) -> str:
    """Level band from the score percentage."""
    percentage = score * 100 / max_score
    if percentage >= 75:
        return "L3"
    if percentage >= 40:
        return "L2"
    return "L1"


def _string_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if item is not None and str(item).strip())


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class ExaminerResponseParser:
    """
    Turns an examiner reply into an ``ExaminerScore``.

    Three outcomes:
    1. JSON object with a usable score: measured result
    2. No usable JSON or no usable score: parse fallback
    3. No reply at all (see ``transport_fallback``): transport fallback
    """

    def __init__(self, fallback_score: float = 5.0):
        self._fallback_score = fallback_score

    def parse(self, reply: str, profile: ExaminerProfile) -> ExaminerScore:
        """
        Parse one examiner reply.

        Args:
            reply: Raw reply text.
            profile: The examiner that produced it.

        Returns:
            ExaminerScore; degraded with reason ``parse`` when the reply
            could not be used.
        """
        outcome = extract_json_object(reply)

        if isinstance(outcome, Unparseable):
            logger.warning(
                "Examiner %s reply unparseable (%s)", profile.id, outcome.reason
            )
            return self._parse_fallback(reply, profile)

        data = outcome.value
        raw_score = coerce_score(data.get("score"))
        if raw_score is None:
            logger.warning(
                "Examiner %s reply has unusable score: %r", profile.id, data.get("score")
            )
            return self._parse_fallback(reply, profile, feedback=_text(data.get("feedback")))

        score = clamp_score(raw_score, profile.max_score)
        if score != raw_score:
            logger.info(
                "Examiner %s score %s clamped to %s", profile.id, raw_score, score
            )

        criteria = _string_list(data.get("strengths")) or _string_list(data.get("criteria"))
        band = _text(data.get("band")) or band_for(score, profile.max_score)

        return ExaminerScore(
            examiner_id=profile.id,
            examiner_name=profile.name,
            score=score,
            max_score=profile.max_score,
            feedback=_text(data.get("feedback")) or DEFAULT_FEEDBACK,
            criteria=criteria,
            improvements=_string_list(data.get("improvements")),
            band=band,
            ao=profile.ao,
            color=profile.color,
        )

    def transport_fallback(self, profile: ExaminerProfile) -> ExaminerScore:
        """Score used when the examiner could not be reached at all."""
        score = clamp_score(self._fallback_score, profile.max_score)
        return ExaminerScore(
            examiner_id=profile.id,
            examiner_name=profile.name,
            score=score,
            max_score=profile.max_score,
            feedback=TRANSPORT_FEEDBACK,
            criteria=(),
            band=band_for(score, profile.max_score),
            ao=profile.ao,
            color=profile.color,
            degraded=True,
            failure_reason=FailureReason.TRANSPORT,
        )

    def _parse_fallback(
        self, reply: str, profile: ExaminerProfile, feedback: str = ""
    ) -> ExaminerScore:
        score = clamp_score(self._fallback_score, profile.max_score)
        return ExaminerScore(
            examiner_id=profile.id,
            examiner_name=profile.name,
            score=score,
            max_score=profile.max_score,
            feedback=feedback or reply[:FEEDBACK_FALLBACK_CHARS].strip() or DEFAULT_FEEDBACK,
            criteria=PARSE_FALLBACK_CRITERIA,
            improvements=PARSE_FALLBACK_IMPROVEMENTS,
            band=band_for(score, profile.max_score),
            ao=profile.ao,
            color=profile.color,
            degraded=True,
            failure_reason=FailureReason.PARSE,
        )
