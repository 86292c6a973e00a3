"""
RTP Indicator Engine: hierarchical aggregation of school-monitoring surveys

Computes Right to Play programme indicators (implementation plans, lesson
plans, learning environments, teacher skills, enrollment, schools reached,
facility availability, completion rates) for every school, circuit, district
and region from raw survey submissions, and classifies each value against
its standard.

Parents are never averaged from child percentages: each level sums its
children's numerators and denominators and divides once, so a region's
value equals pooling every submission beneath it.

To swap the Excel export for a database feed:
    Implement fetch_submissions / fetch_itineraries / fetch_hierarchy
    against the survey database, returning the same fact_submission,
    dim_itinerary and dim_entity columns, and pass the object to
    IndicatorDashboard. Nothing else changes.

To connect to a front end:
    Build one IndicatorDashboard per report request and call
    get_outcome_overview, get_breakdown and get_trend; results are plain
    dicts, tuples and DataFrames.

To add new indicators:
    Add an entry to config.INDICATOR_REGISTRY naming its kind, category,
    input questions and (for scored indicators) weights and threshold.
    build_registry validates it at start-up.
"""

from .aggregator import Aggregator
from .classify import ThresholdClassifier
from .dashboard import IndicatorDashboard
from .errors import (
    EntityNotFound,
    HierarchyError,
    IndicatorDataError,
    IndicatorError,
    InvalidAnswerValue,
    RegistryError,
    SourceTimeout,
    UnknownIndicator,
)
from .hierarchy import Entity, EntityTree, build_entity_tree
from .registry import FormulaKind, IndicatorDefinition, IndicatorRegistry, build_registry
from .results import Contribution, IndicatorResult
from .status import Status, Tally

__all__ = [
    "Aggregator",
    "ThresholdClassifier",
    "IndicatorDashboard",
    "EntityNotFound",
    "HierarchyError",
    "IndicatorDataError",
    "IndicatorError",
    "InvalidAnswerValue",
    "RegistryError",
    "SourceTimeout",
    "UnknownIndicator",
    "Entity",
    "EntityTree",
    "build_entity_tree",
    "FormulaKind",
    "IndicatorDefinition",
    "IndicatorRegistry",
    "build_registry",
    "Contribution",
    "IndicatorResult",
    "Status",
    "Tally",
]
