"""
Submission and hierarchy sources.

The engine consumes two narrow interfaces. Any object with the matching
methods can be passed to the dashboard; a database-backed source only has
to return DataFrames with the same columns.
"""

import logging
from typing import Protocol

import pandas as pd

from ..hierarchy import normalise_id
from .workbook import (
    ENTITY_COLUMNS,
    ITINERARY_COLUMNS,
    SUBMISSION_COLUMNS,
    load_entities,
    load_itineraries,
    load_submissions,
)

logger = logging.getLogger(__name__)

FACT_SUBMISSION_COLUMNS = SUBMISSION_COLUMNS + ["answers"]


class SubmissionSource(Protocol):
    def fetch_submissions(
        self,
        itinerary_id,
        scope_entity_id=None,
        category_id=None,
    ) -> pd.DataFrame: ...

    def fetch_itineraries(self) -> pd.DataFrame: ...


class HierarchyProvider(Protocol):
    def fetch_hierarchy(self, scope_entity_id=None) -> pd.DataFrame: ...


def _scope_ids(dim_entity: pd.DataFrame, scope_entity_id) -> set[str]:
    """Ids of scope_entity_id and all of its descendants in a dim_entity table."""
    parents = dim_entity.set_index("entity_id")["parent_id"]
    children: dict[str, list[str]] = {}
    for entity_id, parent_id in parents.items():
        if pd.notna(parent_id):
            children.setdefault(parent_id, []).append(entity_id)

    scope = normalise_id(scope_entity_id)
    found = set()
    stack = [scope] if scope in parents.index else []
    while stack:
        entity_id = stack.pop()
        found.add(entity_id)
        stack.extend(children.get(entity_id, ()))
    return found


def _ancestor_ids(dim_entity: pd.DataFrame, entity_id) -> set[str]:
    parents = dim_entity.set_index("entity_id")["parent_id"]
    found = set()
    current = parents.get(normalise_id(entity_id))
    while current is not None and pd.notna(current) and current not in found:
        found.add(current)
        current = parents.get(current)
    return found


class FrameSource:
    """In-memory source over dim_entity, dim_itinerary and fact_submission frames.

    Ids are normalised to strings on the way in.
    """

    def __init__(
        self,
        dim_entity: pd.DataFrame,
        dim_itinerary: pd.DataFrame,
        fact_submission: pd.DataFrame,
    ):
        self.dim_entity = dim_entity[ENTITY_COLUMNS].assign(
            entity_id=dim_entity["entity_id"].map(normalise_id),
            parent_id=dim_entity["parent_id"].map(normalise_id),
        )
        self.dim_itinerary = dim_itinerary[ITINERARY_COLUMNS].assign(
            itinerary_id=dim_itinerary["itinerary_id"].map(normalise_id)
        )
        if fact_submission.empty:
            fact_submission = pd.DataFrame(columns=FACT_SUBMISSION_COLUMNS)
        self.fact_submission = fact_submission[FACT_SUBMISSION_COLUMNS].assign(
            entity_id=fact_submission["entity_id"].map(normalise_id),
            itinerary_id=fact_submission["itinerary_id"].map(normalise_id),
        )

    def fetch_hierarchy(self, scope_entity_id=None) -> pd.DataFrame:
        """The scope's subtree plus its ancestor chain, so parents still resolve."""
        if scope_entity_id is None:
            return self.dim_entity.copy()
        keep = _scope_ids(self.dim_entity, scope_entity_id)
        keep |= _ancestor_ids(self.dim_entity, scope_entity_id)
        return self.dim_entity[self.dim_entity["entity_id"].isin(keep)].reset_index(drop=True)

    def fetch_itineraries(self) -> pd.DataFrame:
        return self.dim_itinerary.copy()

    def fetch_submissions(self, itinerary_id, scope_entity_id=None, category_id=None) -> pd.DataFrame:
        df = self.fact_submission
        mask = df["itinerary_id"] == normalise_id(itinerary_id)
        if scope_entity_id is not None:
            mask &= df["entity_id"].isin(_scope_ids(self.dim_entity, scope_entity_id))
        if category_id is not None:
            mask &= df["category_id"] == category_id
        return df[mask].reset_index(drop=True)


class WorkbookSource(FrameSource):
    """Source backed by an .xlsx export, read once with openpyxl."""

    def __init__(self, path):
        self.path = path
        logger.info("Reading submissions workbook %s", path)
        super().__init__(
            load_entities(path),
            load_itineraries(path),
            load_submissions(path),
        )
