"""
Threshold classification: numeric values and raw answers to a Status.

Pure functions with no side effects. Absence of data always classifies to
Status.NO_DATA, never to Inadequate or Poor.
"""

import math
from typing import Any, Mapping

from .formulas import grade_answer, is_missing
from .registry import IndicatorDefinition, IndicatorRegistry
from .status import Status, Tally


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def classify_availability(tally: Tally) -> Status:
    """Return Adequate, Partial or Inadequate for a tally of sub-items.

    Logic
    -----
    - Adequate   if every sub-item is positive
    - Inadequate if every sub-item is negative
    - Partial    otherwise (mixed, or any partial sub-item)
    """
    if tally.total == 0:
        return Status.NO_DATA
    if tally.adequate == tally.total:
        return Status.ADEQUATE
    if tally.inadequate == tally.total:
        return Status.INADEQUATE
    return Status.PARTIAL


def classify_security(tally: Tally) -> Status:
    """Return Excellent, Good, Average or Poor for a tally of security items.

    Logic
    -----
    - Excellent if every item is adequate
    - Poor      if every item is inadequate
    - Good      if (adequate + partial/2) / total >= 0.5
    - Average   otherwise
    """
    if tally.total == 0:
        return Status.NO_DATA
    if tally.adequate == tally.total:
        return Status.EXCELLENT
    if tally.inadequate == tally.total:
        return Status.POOR
    share = (tally.adequate + tally.partial / 2) / tally.total
    return Status.GOOD if share >= 0.5 else Status.AVERAGE


def classify_scored(value: Any, threshold: float) -> Status:
    """MeetsStandard if value >= threshold, else BelowStandard."""
    number = _as_number(value)
    if number is None:
        return Status.NO_DATA
    return Status.MEETS_STANDARD if number >= threshold else Status.BELOW_STANDARD


class ThresholdClassifier:
    """Classifies indicator values using the thresholds of a registry."""

    def __init__(self, registry: IndicatorRegistry):
        self.registry = registry

    def classify(self, indicator_key: str, value: Any) -> Status:
        """Return the Status of value for the indicator's family.

        value may be a number, a Tally, a mapping of question -> answer, a
        sequence of answers, or a single answer. Raises UnknownIndicator for
        unregistered keys.
        """
        defn = self.registry.get(indicator_key)

        if defn.family in ("availability", "security"):
            tally = self._tally(defn, value)
            if defn.family == "security":
                return classify_security(tally)
            return classify_availability(tally)

        if defn.family == "scored":
            return classify_scored(value, defn.threshold)

        number = _as_number(value)
        if number is None:
            return Status.NO_DATA
        if defn.family == "rate" and defn.threshold is not None:
            return classify_scored(number, defn.threshold)
        return Status.REPORTED

    @staticmethod
    def _tally(defn: IndicatorDefinition, value: Any) -> Tally:
        if isinstance(value, Tally):
            return value
        if value is None:
            return Tally()
        if isinstance(value, Mapping):
            return Tally.from_grades(
                grade_answer(defn, question, answer)
                for question, answer in value.items()
                if not is_missing(answer)
            )
        if isinstance(value, (list, tuple, set, frozenset)):
            return Tally.from_grades(
                grade_answer(defn, "", answer) for answer in value if not is_missing(answer)
            )
        if is_missing(value):
            return Tally()
        return Tally.from_grades([grade_answer(defn, "", value)])
