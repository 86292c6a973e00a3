"""
Dashboard-ready output functions.

IndicatorDashboard is the entry point for a report request: it takes one
snapshot of the sources, computes indicators on demand and caches every
results table for its lifetime. Methods return IndicatorResults, plain
dicts or labelled DataFrames suitable for cards, charts and exports.
"""

import logging

import pandas as pd

from .aggregator import Aggregator
from .classify import ThresholdClassifier
from .comparator import breakdown, trend
from .config import DEFAULT_TREND_LIMIT, FETCH_TIMEOUT_SECONDS, OUTCOME_INDICATORS, PROGRAM_NAME
from .errors import EntityNotFound
from .hierarchy import Entity, normalise_id
from .loaders.snapshot import RequestSnapshot
from .loaders.sources import HierarchyProvider, SubmissionSource
from .registry import IndicatorRegistry
from .results import IndicatorResult
from .transforms import build_detail_frame, build_dim_itinerary, build_fact_indicator

logger = logging.getLogger(__name__)

BREAKDOWN_COLUMNS = ["rank", "entity_id", "name", "entity_type", "value", "percentage", "status"]


class IndicatorDashboard:
    """Indicator queries over one request snapshot.

    Parameters
    ----------
    registry : Indicator definitions.
    source : SubmissionSource for itineraries and submissions.
    provider : HierarchyProvider; defaults to `source`.
    scope_entity_id : Restrict the snapshot to one region/district/circuit.
                      Only the scope and its descendants can be queried.
    fetch_timeout : Seconds allowed for each external fetch.
    """

    def __init__(
        self,
        registry: IndicatorRegistry,
        source: SubmissionSource,
        provider: HierarchyProvider | None = None,
        scope_entity_id=None,
        fetch_timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self.registry = registry
        self.classifier = ThresholdClassifier(registry)
        self.snapshot = RequestSnapshot(source, provider, scope_entity_id, fetch_timeout)
        self._aggregators: dict[str, Aggregator] = {}
        self._results: dict[tuple[str, str], dict[str, IndicatorResult]] = {}
        self._facts: dict[tuple[str, str], pd.DataFrame] = {}

    @property
    def tree(self):
        return self.snapshot.tree

    def _entity(self, entity_id) -> Entity:
        entity = self.tree.get(normalise_id(entity_id))
        scope = self.snapshot.scope_entity_id
        if scope is not None and entity.id not in self.tree.subtree_ids(scope):
            raise EntityNotFound(entity.id)
        return entity

    # ------------------------------------------------------------------
    # Cached computation
    # ------------------------------------------------------------------
    def _aggregator(self, itinerary_id: str) -> Aggregator:
        if itinerary_id not in self._aggregators:
            if itinerary_id not in set(self.snapshot.itineraries["itinerary_id"]):
                logger.warning("Itinerary '%s' is not in the itinerary list", itinerary_id)
            self._aggregators[itinerary_id] = Aggregator(
                self.registry,
                self.tree,
                self.snapshot.submissions(itinerary_id),
                self.classifier,
            )
        return self._aggregators[itinerary_id]

    def _all_results(self, itinerary_id, indicator_key: str) -> dict[str, IndicatorResult]:
        cache_key = (normalise_id(itinerary_id), indicator_key)
        if cache_key not in self._results:
            # Fail on an unknown key before any data is fetched
            self.registry.get(indicator_key)
            aggregator = self._aggregator(cache_key[0])
            self._results[cache_key] = aggregator.compute(
                cache_key[0], indicator_key, self.snapshot.scope_entity_id
            )
        return self._results[cache_key]

    def _fact(self, itinerary_id, indicator_key: str) -> pd.DataFrame:
        cache_key = (normalise_id(itinerary_id), indicator_key)
        if cache_key not in self._facts:
            results = self._all_results(*cache_key)
            self._facts[cache_key] = build_fact_indicator(results.values(), self.tree)
        return self._facts[cache_key]

    # ------------------------------------------------------------------
    # Exposed queries
    # ------------------------------------------------------------------
    def get_indicator_result(self, itinerary_id, indicator_key: str, entity_id) -> IndicatorResult:
        """Result of one indicator for one entity (its whole subtree pooled).

        Raises UnknownIndicator or EntityNotFound.
        """
        self.registry.get(indicator_key)
        entity = self._entity(entity_id)
        return self._all_results(itinerary_id, indicator_key)[entity.id]

    def get_breakdown(
        self,
        itinerary_id,
        indicator_key: str,
        parent_id,
    ) -> list[tuple[Entity, float | None]]:
        """Children of parent_id ranked by headline value, no-data children last."""
        self.registry.get(indicator_key)
        self._entity(parent_id)
        fact = self._fact(itinerary_id, indicator_key)
        return breakdown(fact, self.tree, itinerary_id, indicator_key, parent_id)

    def get_trend(
        self,
        indicator_key: str,
        entity_id,
        limit: int = DEFAULT_TREND_LIMIT,
    ) -> list[tuple[str, float | None]]:
        """Headline value over the `limit` most recent itineraries, oldest first."""
        self.registry.get(indicator_key)
        self._entity(entity_id)
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        dim_itinerary = build_dim_itinerary(self.snapshot.itineraries)
        recent = dim_itinerary.tail(limit)
        facts = [self._fact(i, indicator_key) for i in recent["itinerary_id"]]
        if not facts:
            return []
        return trend(pd.concat(facts, ignore_index=True), recent, indicator_key, entity_id, limit)

    def get_outcome_overview(self, itinerary_id, entity_id, indicator_keys: list[str] | None = None) -> dict:
        """Every outcome indicator for one entity, shaped for overview cards.

        Returns
        -------
        dict with keys: program, itinerary_id, entity (id, name, type),
        indicators (key -> label, value, percentage, status, components).
        """
        entity = self._entity(entity_id)
        keys = indicator_keys if indicator_keys is not None else OUTCOME_INDICATORS

        indicators = {}
        for key in keys:
            result = self.get_indicator_result(itinerary_id, key, entity.id)
            indicators[key] = {
                "label": self.registry.get(key).label,
                "value": result.value,
                "percentage": result.percentage,
                "status": result.status.value,
                "components": dict(result.components),
            }

        return {
            "program": PROGRAM_NAME,
            "itinerary_id": normalise_id(itinerary_id),
            "entity": {"id": entity.id, "name": entity.name, "type": entity.type},
            "indicators": indicators,
        }

    def get_indicator_table(self, itinerary_id, indicator_key: str, scope_entity_id=None) -> pd.DataFrame:
        """fact_indicator rows for the scope entity and its descendants.

        Returns
        -------
        DataFrame with columns:
            itinerary_id, indicator_key, entity_id, entity_name, entity_type,
            parent_id, numerator, denominator, raw_value, value, percentage,
            status, error, then component_* columns
        """
        fact = self._fact(itinerary_id, indicator_key)
        if scope_entity_id is None:
            return fact.copy()
        scope = self.tree.subtree_ids(self._entity(scope_entity_id).id)
        return fact[fact["entity_id"].isin(scope)].reset_index(drop=True)

    def get_breakdown_table(self, itinerary_id, indicator_key: str, parent_id) -> pd.DataFrame:
        """get_breakdown as a ranked, labelled DataFrame."""
        ranked = self.get_breakdown(itinerary_id, indicator_key, parent_id)
        results = self._all_results(itinerary_id, indicator_key)

        rows = []
        for rank, (entity, value) in enumerate(ranked, start=1):
            result = results[entity.id]
            rows.append(
                {
                    "rank": rank if value is not None else None,
                    "entity_id": entity.id,
                    "name": entity.name,
                    "entity_type": entity.type,
                    "value": value,
                    "percentage": result.percentage,
                    "status": result.status.value,
                }
            )
        return pd.DataFrame(rows, columns=BREAKDOWN_COLUMNS)

    def get_submission_detail(self, itinerary_id, indicator_key: str, entity_id) -> pd.DataFrame:
        """Per-submission contributions behind one result, excluded ones flagged."""
        result = self.get_indicator_result(itinerary_id, indicator_key, entity_id)
        return build_detail_frame(result)

    def get_available_itineraries(self) -> list[str]:
        """Itinerary ids oldest first, for UI dropdowns."""
        itineraries = self.snapshot.itineraries
        if itineraries.empty:
            return []
        return itineraries["itinerary_id"].tolist()
