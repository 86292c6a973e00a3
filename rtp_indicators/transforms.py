"""
Data transforms: shape source frames and computed results into
star-schema fact and dimension tables.

    dim_entity       one row per region/district/circuit/school
    dim_itinerary    one row per monitoring round, chronological
    fact_submission  one row per survey submission (answers as a dict)
    fact_indicator   one row per (itinerary, indicator, entity) result
"""

import logging
from typing import Iterable, Mapping

import pandas as pd

from .config import ENTITY_LEVELS, PROGRAM_NAME
from .hierarchy import EntityTree, normalise_id
from .results import IndicatorResult

logger = logging.getLogger(__name__)

FACT_SUBMISSION_COLUMNS = [
    "submission_id",
    "entity_id",
    "itinerary_id",
    "category_id",
    "submitted_at",
    "answers",
]

FACT_INDICATOR_COLUMNS = [
    "itinerary_id",
    "indicator_key",
    "entity_id",
    "entity_name",
    "entity_type",
    "parent_id",
    "numerator",
    "denominator",
    "raw_value",
    "value",
    "percentage",
    "status",
    "error",
]


def build_dim_entity(tree: EntityTree) -> pd.DataFrame:
    """Flatten the hierarchy with one ancestor column per level.

    Returns
    -------
    dim_entity DataFrame with columns:
        entity_id, entity_type, name, parent_id, level, program,
        region_id, district_id, circuit_id
    """
    rows = []
    for entity in tree:
        row = {
            "entity_id": entity.id,
            "entity_type": entity.type,
            "name": entity.name,
            "parent_id": entity.parent_id,
            "level": ENTITY_LEVELS.index(entity.type),
            "program": PROGRAM_NAME,
        }
        lineage = {a.type: a.id for a in tree.ancestors(entity.id)}
        lineage[entity.type] = entity.id
        for level in ENTITY_LEVELS[:-1]:
            row[f"{level}_id"] = lineage.get(level)
        rows.append(row)

    dim = pd.DataFrame(rows)
    logger.info("Built dim_entity with %d rows", len(dim))
    return dim


def build_dim_itinerary(itineraries: pd.DataFrame) -> pd.DataFrame:
    """Sort itineraries chronologically and number them.

    Returns
    -------
    dim_itinerary DataFrame with columns:
        itinerary_id, label, start_date, end_date, sequence
    """
    dim = itineraries.assign(
        itinerary_id=itineraries["itinerary_id"].map(normalise_id),
        start_date=pd.to_datetime(itineraries["start_date"]),
        end_date=pd.to_datetime(itineraries["end_date"]),
    )
    missing_label = dim["label"].isna()
    if missing_label.any():
        dim.loc[missing_label, "label"] = dim.loc[missing_label, "itinerary_id"]

    dim = dim.sort_values(["start_date", "itinerary_id"], kind="mergesort").reset_index(drop=True)
    dim["sequence"] = range(1, len(dim) + 1)
    logger.info("Built dim_itinerary with %d rows", len(dim))
    return dim


def build_fact_submission(submissions: pd.DataFrame) -> pd.DataFrame:
    """Normalise a raw submissions frame.

    Ids become strings, category ids lower-case, submitted_at a Timestamp,
    and a missing or non-dict answers cell an empty dict. Rows whose
    submission_id repeats keep the last occurrence.
    """
    missing = [c for c in FACT_SUBMISSION_COLUMNS if c not in submissions.columns]
    if missing:
        raise ValueError(f"Submissions frame is missing columns: {missing}")

    fact = submissions[FACT_SUBMISSION_COLUMNS].assign(
        submission_id=submissions["submission_id"].map(normalise_id),
        entity_id=submissions["entity_id"].map(normalise_id),
        itinerary_id=submissions["itinerary_id"].map(normalise_id),
        category_id=submissions["category_id"].astype(str).str.strip().str.lower(),
        submitted_at=pd.to_datetime(submissions["submitted_at"]),
        answers=submissions["answers"].map(lambda a: dict(a) if isinstance(a, Mapping) else {}),
    )

    duplicated = fact["submission_id"].duplicated(keep="last")
    if duplicated.any():
        logger.warning("Dropping %d duplicate submission ids", duplicated.sum())
        fact = fact[~duplicated]

    fact = fact.reset_index(drop=True)
    logger.info("Built fact_submission with %d rows", len(fact))
    return fact


def build_fact_indicator(results: Iterable[IndicatorResult], tree: EntityTree) -> pd.DataFrame:
    """One row per IndicatorResult, labelled with entity name, type and parent.

    Component counts are spread into component_<name> columns.
    """
    rows = []
    for result in results:
        row = result.to_row()
        entity = tree.get(result.entity_id)
        row["entity_name"] = entity.name
        row["entity_type"] = entity.type
        row["parent_id"] = entity.parent_id
        rows.append(row)

    fact = pd.DataFrame(rows)
    if fact.empty:
        fact = pd.DataFrame(columns=FACT_INDICATOR_COLUMNS)
    else:
        extra = [c for c in fact.columns if c not in FACT_INDICATOR_COLUMNS]
        fact = fact[FACT_INDICATOR_COLUMNS + extra]
    logger.info("Built fact_indicator with %d rows", len(fact))
    return fact


def build_detail_frame(result: IndicatorResult) -> pd.DataFrame:
    """Per-submission drill-down behind one result, excluded rows included."""
    rows = [c.to_row() for c in result.detail]
    if not rows:
        return pd.DataFrame(
            columns=[
                "entity_id",
                "submission_id",
                "category_id",
                "numerator",
                "denominator",
                "score",
                "excluded",
                "error",
            ]
        )
    return pd.DataFrame(rows)
