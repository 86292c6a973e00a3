"""
Aggregator: per-entity indicator values, rolled up school -> region.

Leaf results come straight from a school's submissions. A parent never
re-applies the formula to pooled raw data; it sums its children's
numerators, denominators and component counts (or unions their member
sets for distinct counts) and divides once. The result is identical to
pooling the raw submissions, at every level of the tree.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType

import pandas as pd

from .classify import ThresholdClassifier
from .config import CATEGORY_LEVELS, SCORE_DECIMALS
from .errors import IndicatorDataError, InvalidAnswerValue
from .formulas import (
    calc_percentage,
    excluded_contribution,
    ratio_contribution,
    sum_contribution,
    weighted_contribution,
)
from .hierarchy import Entity, EntityTree, normalise_id
from .registry import FormulaKind, IndicatorDefinition, IndicatorRegistry
from .results import Contribution, IndicatorResult
from .status import Tally
from .transforms import FACT_SUBMISSION_COLUMNS

logger = logging.getLogger(__name__)


@dataclass
class _Partial:
    """Running totals for one node while the tree is folded."""

    numerator: float = 0.0
    denominator: float = 0.0
    counted: int = 0
    components: Counter = field(default_factory=Counter)
    members: set = field(default_factory=set)
    detail: list = field(default_factory=list)

    def absorb(self, contribution: Contribution) -> None:
        self.detail.append(contribution)
        if contribution.excluded:
            return
        self.numerator += contribution.numerator
        self.denominator += contribution.denominator
        self.counted += 1
        self.components.update(contribution.components)

    def add(self, other: "_Partial") -> None:
        self.numerator += other.numerator
        self.denominator += other.denominator
        self.counted += other.counted
        self.components.update(other.components)
        self.members |= other.members
        self.detail.extend(other.detail)


class Aggregator:
    """Computes IndicatorResults over one snapshot of hierarchy and submissions.

    Parameters
    ----------
    registry : Indicator definitions to compute with.
    tree : Validated entity hierarchy.
    submissions : fact_submission DataFrame (may hold several itineraries).
    classifier : Optional classifier; defaults to one over the same registry.
    """

    def __init__(
        self,
        registry: IndicatorRegistry,
        tree: EntityTree,
        submissions: pd.DataFrame,
        classifier: ThresholdClassifier | None = None,
    ):
        self.registry = registry
        self.tree = tree
        self.classifier = classifier or ThresholdClassifier(registry)

        if submissions.empty:
            submissions = pd.DataFrame(columns=FACT_SUBMISSION_COLUMNS)
        submissions = submissions.assign(
            entity_id=submissions["entity_id"].map(normalise_id),
            itinerary_id=submissions["itinerary_id"].map(normalise_id),
        )
        known = submissions["entity_id"].isin([e.id for e in tree])
        if not known.all():
            logger.warning(
                "Ignoring %d submissions from entities outside the hierarchy: %s",
                (~known).sum(),
                sorted(submissions.loc[~known, "entity_id"].astype(str).unique())[:5],
            )
        self.submissions = submissions[known]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def compute(
        self,
        itinerary_id,
        indicator_key: str,
        scope_entity_id=None,
    ) -> dict[str, IndicatorResult]:
        """Return results for the scope entity and every descendant.

        With no scope, every region (and so the whole tree) is computed.
        Raises UnknownIndicator for an unregistered key and EntityNotFound
        for a scope outside the hierarchy.
        """
        defn = self.registry.get(indicator_key)
        itinerary_id = normalise_id(itinerary_id)

        if scope_entity_id is None:
            scopes = [root.id for root in self.tree.roots()]
        else:
            scopes = [normalise_id(scope_entity_id)]

        results: dict[str, IndicatorResult] = {}
        for scope in scopes:
            results.update(self._fold(defn, itinerary_id, scope))

        logger.info(
            "Computed %s for itinerary %s: %d entities",
            indicator_key,
            itinerary_id,
            len(results),
        )
        return results

    def compute_result(self, itinerary_id, indicator_key: str, entity_id) -> IndicatorResult:
        """Return the result for a single entity (its subtree is folded)."""
        return self.compute(itinerary_id, indicator_key, entity_id)[normalise_id(entity_id)]

    # ------------------------------------------------------------------
    # Fold
    # ------------------------------------------------------------------
    def _fold(self, defn: IndicatorDefinition, itinerary_id: str, scope_id: str):
        nodes = self.tree.subtree(scope_id)
        grouped = self._submissions_by_entity(defn, itinerary_id, {e.id for e in nodes})

        partials: dict[str, _Partial] = {}
        results: dict[str, IndicatorResult] = {}

        for entity in nodes:
            error = None
            try:
                partial = self._own_partial(defn, entity, grouped.get(entity.id))
            except IndicatorDataError as exc:
                logger.exception("Failed computing %s for %s %s", defn.key, entity.type, entity.id)
                partial = _Partial()
                error = str(exc)

            for child in self.tree.children(entity.id):
                partial.add(partials[child.id])

            partials[entity.id] = partial
            results[entity.id] = self._finalise(defn, entity, itinerary_id, partial, error)

        return results

    def _submissions_by_entity(
        self,
        defn: IndicatorDefinition,
        itinerary_id: str,
        entity_ids: set[str],
    ) -> dict[str, pd.DataFrame]:
        df = self.submissions
        mask = (
            (df["itinerary_id"] == itinerary_id)
            & df["category_id"].isin(defn.categories)
            & df["entity_id"].isin(entity_ids)
        )
        selected = df[mask]
        if "submitted_at" in selected.columns:
            selected = selected.sort_values(["submitted_at", "submission_id"], kind="mergesort")
        return {entity_id: group for entity_id, group in selected.groupby("entity_id", sort=False)}

    def _own_partial(
        self,
        defn: IndicatorDefinition,
        entity: Entity,
        submissions: pd.DataFrame | None,
    ) -> _Partial:
        """Partial for an entity's own submissions, before its children are added."""
        partial = _Partial()

        if defn.kind is FormulaKind.RATIO and defn.unit == "entity":
            # Completion rates: every entity at the submitting level is expected once
            if entity.type == CATEGORY_LEVELS[defn.categories[0]]:
                present = set() if submissions is None else set(submissions["category_id"])
                complete = all(c in present for c in defn.categories)
                partial.absorb(
                    Contribution(
                        entity_id=entity.id,
                        numerator=1.0 if complete else 0.0,
                        denominator=1.0,
                        components=MappingProxyType({"complete": 1 if complete else 0}),
                        answers=tuple((c, c in present) for c in defn.categories),
                    )
                )
            return partial

        if submissions is None:
            return partial

        for submission in submissions.itertuples(index=False):
            expected = CATEGORY_LEVELS.get(submission.category_id)
            if entity.type != expected:
                logger.warning(
                    "Submission %s (%s) comes from %s %s, expected a %s; excluded",
                    submission.submission_id,
                    submission.category_id,
                    entity.type,
                    entity.id,
                    expected,
                )
                partial.absorb(
                    excluded_contribution(
                        defn, submission, f"submitted by a {entity.type}, expected a {expected}"
                    )
                )
                continue

            try:
                contribution = self._contribution(defn, submission)
            except InvalidAnswerValue as exc:
                logger.warning(
                    "Excluding submission %s from %s: %s", submission.submission_id, defn.key, exc
                )
                partial.absorb(excluded_contribution(defn, submission, str(exc)))
                continue

            partial.absorb(contribution)
            if defn.kind is FormulaKind.DISTINCT_COUNT and entity.type == defn.count_level:
                partial.members.add(entity.id)

        return partial

    @staticmethod
    def _contribution(defn: IndicatorDefinition, submission) -> Contribution:
        if defn.kind is FormulaKind.RATIO:
            return ratio_contribution(defn, submission)
        if defn.kind is FormulaKind.WEIGHTED_AVERAGE:
            return weighted_contribution(defn, submission)
        if defn.kind is FormulaKind.SUM:
            return sum_contribution(defn, submission)
        if defn.kind is FormulaKind.DISTINCT_COUNT:
            return Contribution(
                entity_id=submission.entity_id,
                submission_id=submission.submission_id,
                category_id=submission.category_id,
            )
        raise ValueError(f"Unsupported formula kind: {defn.kind!r}")

    # ------------------------------------------------------------------
    # Division and classification
    # ------------------------------------------------------------------
    def _finalise(
        self,
        defn: IndicatorDefinition,
        entity: Entity,
        itinerary_id: str,
        partial: _Partial,
        error: str | None,
    ) -> IndicatorResult:
        numerator = partial.numerator
        denominator: float | None = partial.denominator
        raw_value = None
        percentage = None
        components = dict(partial.components)

        if defn.kind is FormulaKind.RATIO:
            percentage = calc_percentage(numerator, denominator)
            value = percentage
            if defn.family in ("availability", "security"):
                status = self.classifier.classify(defn.key, Tally.from_components(components))
            else:
                status = self.classifier.classify(defn.key, percentage)

        elif defn.kind is FormulaKind.WEIGHTED_AVERAGE:
            mean = numerator / denominator if denominator else None
            value = round(mean, SCORE_DECIMALS) if mean is not None else None
            percentage = calc_percentage(components.get("meeting", 0), components.get("scored", 0))
            status = self.classifier.classify(defn.key, mean)

        elif defn.kind is FormulaKind.SUM:
            denominator = None
            raw_value = numerator
            value = raw_value
            for position in range(len(defn.inputs)):
                components.setdefault(defn.component_label(position), 0.0)
            components.setdefault("total", 0.0)
            status = self.classifier.classify(defn.key, raw_value if partial.counted else None)

        else:
            denominator = None
            numerator = float(len(partial.members))
            raw_value = numerator
            value = raw_value
            status = self.classifier.classify(defn.key, raw_value if partial.members else None)

        return IndicatorResult(
            entity_id=entity.id,
            indicator_key=defn.key,
            itinerary_id=itinerary_id,
            numerator=numerator,
            denominator=denominator,
            raw_value=raw_value,
            value=value,
            percentage=percentage,
            status=status,
            components=MappingProxyType(components),
            members=frozenset(partial.members),
            detail=tuple(partial.detail),
            error=error,
        )
