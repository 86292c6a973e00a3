"""
Indicator Formula Registry.

Turns the static INDICATOR_REGISTRY table into validated, immutable
IndicatorDefinition objects. A registry is built explicitly and passed to
the aggregator and classifier, so several registries (for example one per
formula revision) can coexist.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from .config import CATEGORY_LEVELS, ENTITY_LEVELS, INDICATOR_REGISTRY, WEIGHT_TOLERANCE
from .errors import RegistryError, UnknownIndicator

logger = logging.getLogger(__name__)


class FormulaKind(str, Enum):
    RATIO = "ratio"
    WEIGHTED_AVERAGE = "weightedAverage"
    SUM = "sum"
    DISTINCT_COUNT = "distinctCount"


FAMILIES = {"rate", "availability", "security", "scored", "count"}

# Families each kind may be classified with
_KIND_FAMILIES = {
    FormulaKind.RATIO: {"rate", "availability", "security"},
    FormulaKind.WEIGHTED_AVERAGE: {"scored"},
    FormulaKind.SUM: {"count"},
    FormulaKind.DISTINCT_COUNT: {"count"},
}


@dataclass(frozen=True)
class IndicatorDefinition:
    """Declarative formula for one indicator."""

    key: str
    kind: FormulaKind
    label: str
    family: str
    categories: tuple[str, ...]
    inputs: tuple[str, ...] = ()
    weights: tuple[float, ...] | None = None
    threshold: float | None = None
    scale_max: float | None = None
    score_maps: Mapping[str, Mapping[str, float]] = field(default_factory=dict, compare=False)
    open_inputs: frozenset[str] = frozenset()
    component_labels: tuple[str, ...] = ()
    unit: str = "submission"
    count_level: str | None = None

    def score_map_for(self, question: str) -> Mapping[str, float]:
        return self.score_maps.get(question, {})

    def component_label(self, position: int) -> str:
        if position < len(self.component_labels):
            return self.component_labels[position]
        return self.inputs[position]


def _validate(defn: IndicatorDefinition) -> None:
    """Raise RegistryError if the definition breaks an invariant."""
    where = f"indicator '{defn.key}'"

    if defn.family not in _KIND_FAMILIES[defn.kind]:
        raise RegistryError(f"{where}: family '{defn.family}' invalid for kind '{defn.kind.value}'")

    if not defn.categories:
        raise RegistryError(f"{where}: at least one submission category is required")
    for category in defn.categories:
        if category not in CATEGORY_LEVELS:
            raise RegistryError(f"{where}: unknown category '{category}'")

    if defn.kind is FormulaKind.WEIGHTED_AVERAGE:
        if not defn.weights or len(defn.weights) != len(defn.inputs):
            raise RegistryError(f"{where}: one weight per input is required")
        if any(w < 0 for w in defn.weights):
            raise RegistryError(f"{where}: weights must be non-negative")
        if abs(math.fsum(defn.weights) - 1.0) > WEIGHT_TOLERANCE:
            raise RegistryError(
                f"{where}: weights sum to {math.fsum(defn.weights)!r}, expected 1.0"
            )
        if defn.scale_max is None:
            raise RegistryError(f"{where}: scale_max is required for weighted averages")
    elif defn.weights is not None:
        raise RegistryError(f"{where}: weights are only valid for weighted averages")

    if defn.family == "scored" and defn.threshold is None:
        raise RegistryError(f"{where}: scored indicators need a threshold")

    if defn.threshold is not None:
        if defn.scale_max is None:
            raise RegistryError(f"{where}: a numeric threshold needs scale_max")
        if not 0 <= defn.threshold <= defn.scale_max:
            raise RegistryError(
                f"{where}: threshold {defn.threshold} outside [0, {defn.scale_max}]"
            )

    if defn.kind is FormulaKind.RATIO:
        if defn.unit not in ("submission", "entity"):
            raise RegistryError(f"{where}: unit must be 'submission' or 'entity'")
        if defn.unit == "submission" and not defn.inputs:
            raise RegistryError(f"{where}: a submission ratio needs at least one input")
    if defn.kind is FormulaKind.SUM and not defn.inputs:
        raise RegistryError(f"{where}: a sum needs at least one input")
    if defn.kind is FormulaKind.DISTINCT_COUNT and defn.count_level not in ENTITY_LEVELS:
        raise RegistryError(f"{where}: count_level must be one of {ENTITY_LEVELS}")

    unknown_open = defn.open_inputs - set(defn.inputs)
    if unknown_open:
        raise RegistryError(f"{where}: open inputs {sorted(unknown_open)} are not inputs")


def make_definition(key: str, entry: Mapping) -> IndicatorDefinition:
    """Build and validate one IndicatorDefinition from a registry table entry."""
    try:
        kind = FormulaKind(entry["kind"])
    except (KeyError, ValueError) as exc:
        raise RegistryError(f"indicator '{key}': invalid or missing kind") from exc

    weights = entry.get("weights")
    threshold = entry.get("threshold")
    scale_max = entry.get("scale_max")
    score_maps = {
        question: MappingProxyType({str(k).strip().lower(): float(v) for k, v in mapping.items()})
        for question, mapping in entry.get("score_maps", {}).items()
    }

    defn = IndicatorDefinition(
        key=key,
        kind=kind,
        label=entry.get("label", key),
        family=entry.get("family", "count"),
        categories=tuple(entry.get("categories", ())),
        inputs=tuple(entry.get("inputs", ())),
        weights=tuple(float(w) for w in weights) if weights is not None else None,
        threshold=float(threshold) if threshold is not None else None,
        scale_max=float(scale_max) if scale_max is not None else None,
        score_maps=MappingProxyType(score_maps),
        open_inputs=frozenset(entry.get("open_inputs", ())),
        component_labels=tuple(entry.get("component_labels", ())),
        unit=entry.get("unit", "submission"),
        count_level=entry.get("count_level"),
    )
    _validate(defn)
    return defn


class IndicatorRegistry(Mapping):
    """Read-only lookup table of indicator definitions keyed by indicator key."""

    def __init__(self, definitions):
        table = {}
        for defn in definitions:
            if defn.key in table:
                raise RegistryError(f"indicator '{defn.key}' registered twice")
            table[defn.key] = defn
        self._definitions = MappingProxyType(table)

    def get(self, key, default=None) -> IndicatorDefinition:  # type: ignore[override]
        """Return the definition for key.

        Unlike dict.get this raises UnknownIndicator for unregistered keys
        unless a default is passed explicitly.
        """
        try:
            return self._definitions[key]
        except KeyError:
            if default is not None:
                return default
            raise UnknownIndicator(key) from None

    def __getitem__(self, key) -> IndicatorDefinition:
        return self.get(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def of_kind(self, kind: FormulaKind) -> list[IndicatorDefinition]:
        return [d for d in self._definitions.values() if d.kind is kind]


def build_registry(table: Mapping[str, Mapping] | None = None) -> IndicatorRegistry:
    """Build a registry from a table shaped like config.INDICATOR_REGISTRY."""
    if table is None:
        table = INDICATOR_REGISTRY
    registry = IndicatorRegistry(make_definition(key, entry) for key, entry in table.items())
    logger.info("Built indicator registry with %d definitions", len(registry))
    return registry
