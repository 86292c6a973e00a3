"""
Per-submission formula evaluation: pure functions with no side effects.

Each function reads one submission's answers and returns what that
submission contributes to an indicator. Bad answers raise
InvalidAnswerValue; the aggregator decides what to do with them.
"""

import math
from types import MappingProxyType
from typing import Any, Mapping

from .config import (
    NOT_AVAILABLE_ANSWERS,
    PARTIAL_ANSWERS,
    PERCENT_DECIMALS,
    POSITIVE_ANSWERS,
)
from .errors import InvalidAnswerValue
from .loaders.utils import safe_float
from .registry import IndicatorDefinition
from .results import Contribution

# Sub-item grades used by ratio formulas and availability tallies
ADEQUATE = "adequate"
PARTIAL = "partial"
INADEQUATE = "inadequate"
GRADES = (ADEQUATE, PARTIAL, INADEQUATE)


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def normalise_answer(value: Any) -> str | None:
    """Lower-cased, stripped string form of an answer, or None if missing."""
    if is_missing(value):
        return None
    return str(value).strip().lower()


def calc_percentage(numerator: float, denominator: float | None) -> float | None:
    """Return numerator/denominator as a percentage.

    None if denominator is 0 or missing. That is no data, not 0%.
    """
    if not denominator:
        return None
    return round(numerator / denominator * 100, PERCENT_DECIMALS)


def grade_answer(defn: IndicatorDefinition | None, question: str, value: Any) -> str:
    """Grade one sub-item answer as adequate, partial or inadequate.

    Logic
    -----
    - missing answer: inadequate
    - booleans: True adequate, False inadequate
    - numbers (e.g. security personnel count): > 0 adequate
    - open inputs (water source, plan upload): any answer outside the
      not-available vocabulary is adequate, whatever the source label
    - other strings: positive vocabulary adequate, partial vocabulary
      partial, anything else inadequate
    """
    if is_missing(value):
        return INADEQUATE
    if isinstance(value, bool):
        return ADEQUATE if value else INADEQUATE
    if isinstance(value, (int, float)):
        return ADEQUATE if value > 0 else INADEQUATE

    answer = normalise_answer(value)
    if defn is not None and question in defn.open_inputs:
        return INADEQUATE if answer in NOT_AVAILABLE_ANSWERS else ADEQUATE
    if answer in POSITIVE_ANSWERS:
        return ADEQUATE
    if answer in PARTIAL_ANSWERS:
        return PARTIAL
    number = safe_float(answer)
    if number is not None:
        return ADEQUATE if number > 0 else INADEQUATE
    return INADEQUATE


def score_answer(
    defn: IndicatorDefinition,
    submission_id: Any,
    question: str,
    value: Any,
) -> float:
    """Return the rating score for one answer, within [0, scale_max].

    Enumerated answers go through the question's score map; numeric answers
    are used as-is. Out-of-range values are rejected, never clamped.
    """
    if is_missing(value):
        raise InvalidAnswerValue(submission_id, question, value, "missing answer")
    if isinstance(value, bool):
        raise InvalidAnswerValue(submission_id, question, value, "not a rating")

    score = None
    if isinstance(value, str):
        score = defn.score_map_for(question).get(normalise_answer(value))
        if score is None:
            score = safe_float(value)
    elif isinstance(value, (int, float)):
        score = float(value)

    if score is None or not math.isfinite(score):
        raise InvalidAnswerValue(submission_id, question, value, "unrecognised rating")
    if not 0 <= score <= defn.scale_max:
        raise InvalidAnswerValue(
            submission_id, question, value, f"outside [0, {defn.scale_max:g}]"
        )
    return score


def parse_count(submission_id: Any, question: str, value: Any) -> float:
    """Coerce a head-count answer. Missing counts as 0; negatives are rejected."""
    if is_missing(value):
        return 0.0
    if isinstance(value, bool):
        raise InvalidAnswerValue(submission_id, question, value, "not a count")
    count = safe_float(value)
    if count is None or not math.isfinite(count):
        raise InvalidAnswerValue(submission_id, question, value, "not a number")
    if count < 0:
        raise InvalidAnswerValue(submission_id, question, value, "negative count")
    return count


def _answers(submission) -> Mapping:
    answers = submission.answers
    if isinstance(answers, Mapping):
        return answers
    return {}


def _picked(defn: IndicatorDefinition, answers: Mapping) -> tuple[tuple[str, Any], ...]:
    return tuple((q, None if is_missing(answers.get(q)) else answers.get(q)) for q in defn.inputs)


def ratio_contribution(defn: IndicatorDefinition, submission) -> Contribution:
    """Each input of the submission is one item; numerator counts adequate items."""
    answers = _answers(submission)
    tally = dict.fromkeys(GRADES, 0)
    for question in defn.inputs:
        tally[grade_answer(defn, question, answers.get(question))] += 1

    return Contribution(
        entity_id=submission.entity_id,
        submission_id=submission.submission_id,
        category_id=submission.category_id,
        numerator=float(tally[ADEQUATE]),
        denominator=float(len(defn.inputs)),
        components=MappingProxyType(tally),
        answers=_picked(defn, answers),
    )


def weighted_contribution(defn: IndicatorDefinition, submission) -> Contribution:
    """Weighted score Σ weight_i × score_i for one submission.

    Raises InvalidAnswerValue if any component answer is unusable.
    """
    answers = _answers(submission)
    scores = [
        score_answer(defn, submission.submission_id, question, answers.get(question))
        for question in defn.inputs
    ]
    score = math.fsum(w * s for w, s in zip(defn.weights, scores))
    meeting = 1 if defn.threshold is not None and score >= defn.threshold else 0

    return Contribution(
        entity_id=submission.entity_id,
        submission_id=submission.submission_id,
        category_id=submission.category_id,
        numerator=score,
        denominator=1.0,
        score=score,
        components=MappingProxyType({"meeting": meeting, "scored": 1}),
        answers=_picked(defn, answers),
    )


def sum_contribution(defn: IndicatorDefinition, submission) -> Contribution:
    """Per-component counts plus their total for one submission."""
    answers = _answers(submission)
    parts = {}
    for position, question in enumerate(defn.inputs):
        parts[defn.component_label(position)] = parse_count(
            submission.submission_id, question, answers.get(question)
        )
    total = math.fsum(parts.values())
    parts["total"] = total

    return Contribution(
        entity_id=submission.entity_id,
        submission_id=submission.submission_id,
        category_id=submission.category_id,
        numerator=total,
        components=MappingProxyType(parts),
        answers=_picked(defn, answers),
    )


def excluded_contribution(defn: IndicatorDefinition, submission, reason: str) -> Contribution:
    """A flagged, zero-weight contribution for a submission that was left out."""
    return Contribution(
        entity_id=submission.entity_id,
        submission_id=submission.submission_id,
        category_id=submission.category_id,
        answers=_picked(defn, _answers(submission)),
        error=reason,
    )
