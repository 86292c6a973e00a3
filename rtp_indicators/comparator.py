"""
Comparator: breakdowns across sibling entities and trends across itineraries.

Both read only the fact_indicator table of already computed results; they
never touch raw submissions.
"""

import logging
import math

import pandas as pd

from .hierarchy import Entity, EntityTree, normalise_id

logger = logging.getLogger(__name__)


def _clean(value) -> float | None:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def breakdown(
    fact_indicator: pd.DataFrame,
    tree: EntityTree,
    itinerary_id,
    indicator_key: str,
    parent_id,
) -> list[tuple[Entity, float | None]]:
    """Children of parent_id with their headline value.

    Logic
    -----
    - highest value first
    - ties broken by entity name, ascending
    - children without data (value None) last, by name

    Raises EntityNotFound if parent_id is not in the tree. A school has no
    children and yields an empty list.
    """
    children = tree.children(normalise_id(parent_id))
    if not children:
        return []

    rows = fact_indicator[
        (fact_indicator["itinerary_id"] == normalise_id(itinerary_id))
        & (fact_indicator["indicator_key"] == indicator_key)
    ]
    values = dict(zip(rows["entity_id"], rows["value"]))

    pairs = [(child, _clean(values.get(child.id))) for child in children]
    with_data = sorted(
        (p for p in pairs if p[1] is not None),
        key=lambda p: (-p[1], p[0].name),
    )
    without = sorted((p for p in pairs if p[1] is None), key=lambda p: p[0].name)
    return with_data + without


def trend(
    fact_indicator: pd.DataFrame,
    dim_itinerary: pd.DataFrame,
    indicator_key: str,
    entity_id,
    limit: int,
) -> list[tuple[str, float | None]]:
    """Headline value of one entity over the `limit` most recent itineraries.

    Returns (itinerary label, value) pairs oldest first. Only itineraries
    with a computed result for the entity are included, so fewer than
    `limit` itineraries give a shorter series. Values may be None where the
    entity had no data in that itinerary.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    rows = fact_indicator[
        (fact_indicator["indicator_key"] == indicator_key)
        & (fact_indicator["entity_id"] == normalise_id(entity_id))
    ][["itinerary_id", "value"]]
    if rows.empty:
        return []

    merged = rows.merge(
        dim_itinerary[["itinerary_id", "label", "start_date"]],
        on="itinerary_id",
        how="inner",
    )
    merged = merged.sort_values(["start_date", "itinerary_id"], kind="mergesort").tail(limit)
    return [(str(r.label), _clean(r.value)) for r in merged.itertuples(index=False)]
