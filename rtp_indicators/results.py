"""
Computed indicator values.

An IndicatorResult is created by the aggregator, one per
(entity, indicator, itinerary), and never mutated afterwards. Contribution
rows keep the per-submission drill-down behind each result.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .status import Status


@dataclass(frozen=True)
class Contribution:
    """What one submission (or, for completion rates, one school) added to a result."""

    entity_id: str
    submission_id: str | None = None
    category_id: str | None = None
    numerator: float = 0.0
    denominator: float = 0.0
    score: float | None = None
    components: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    answers: tuple[tuple[str, Any], ...] = ()
    error: str | None = None

    @property
    def excluded(self) -> bool:
        return self.error is not None

    def to_row(self) -> dict:
        row = {
            "entity_id": self.entity_id,
            "submission_id": self.submission_id,
            "category_id": self.category_id,
            "numerator": self.numerator,
            "denominator": self.denominator,
            "score": self.score,
            "excluded": self.excluded,
            "error": self.error,
        }
        for question, answer in self.answers:
            row[question] = answer
        return row


@dataclass(frozen=True)
class IndicatorResult:
    entity_id: str
    indicator_key: str
    itinerary_id: str
    numerator: float
    denominator: float | None
    raw_value: float | None
    value: float | None
    percentage: float | None
    status: Status
    components: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    members: frozenset[str] = frozenset()
    detail: tuple[Contribution, ...] = ()
    error: str | None = None

    @property
    def has_data(self) -> bool:
        return self.status is not Status.NO_DATA

    def to_row(self) -> dict:
        """Flat dict for the fact_indicator table (detail and members omitted)."""
        row = {
            "itinerary_id": self.itinerary_id,
            "indicator_key": self.indicator_key,
            "entity_id": self.entity_id,
            "numerator": self.numerator,
            "denominator": self.denominator,
            "raw_value": self.raw_value,
            "value": self.value,
            "percentage": self.percentage,
            "status": self.status.value,
            "error": self.error,
        }
        row.update({f"component_{k}": v for k, v in self.components.items()})
        return row
