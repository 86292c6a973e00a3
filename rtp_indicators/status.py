"""Status vocabulary and sub-item tallies."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class Status(str, Enum):
    # availability family
    ADEQUATE = "Adequate"
    PARTIAL = "Partial"
    INADEQUATE = "Inadequate"
    # overall security family
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    POOR = "Poor"
    # scored-quality and thresholded rates
    MEETS_STANDARD = "MeetsStandard"
    BELOW_STANDARD = "BelowStandard"
    # counts and unthresholded rates
    REPORTED = "Reported"
    NO_DATA = "NoData"


@dataclass(frozen=True)
class Tally:
    """Counts of adequate, partial and inadequate sub-items."""

    adequate: int = 0
    partial: int = 0
    inadequate: int = 0

    @property
    def total(self) -> int:
        return self.adequate + self.partial + self.inadequate

    @classmethod
    def from_components(cls, components: Mapping[str, float]) -> "Tally":
        return cls(
            adequate=int(components.get("adequate", 0)),
            partial=int(components.get("partial", 0)),
            inadequate=int(components.get("inadequate", 0)),
        )

    @classmethod
    def from_grades(cls, grades) -> "Tally":
        grades = list(grades)
        return cls(
            adequate=grades.count("adequate"),
            partial=grades.count("partial"),
            inadequate=grades.count("inadequate"),
        )
