"""Shared fixtures: a small hierarchy, the default registry and submission frames."""

import pandas as pd
import pytest

from rtp_indicators.hierarchy import build_entity_tree
from rtp_indicators.registry import build_registry

#   R1
#   ├── D1
#   │   └── C1 ── S1, S2
#   └── D2
#       └── C2 ── S3
ENTITY_ROWS = [
    ("R1", "region", "Northern Region", None),
    ("D1", "district", "Tamale", "R1"),
    ("D2", "district", "Bolga", "R1"),
    ("C1", "circuit", "Circuit A", "D1"),
    ("C2", "circuit", "Circuit B", "D2"),
    ("S1", "school", "Alpha Primary", "C1"),
    ("S2", "school", "Beta Primary", "C1"),
    ("S3", "school", "Gamma Primary", "C2"),
]


@pytest.fixture
def dim_entity():
    return pd.DataFrame(ENTITY_ROWS, columns=["entity_id", "entity_type", "name", "parent_id"])


@pytest.fixture
def tree(dim_entity):
    return build_entity_tree(dim_entity)


@pytest.fixture(scope="session")
def registry():
    return build_registry()


@pytest.fixture
def dim_itinerary():
    return pd.DataFrame(
        {
            "itinerary_id": ["IT1", "IT2", "IT3"],
            "label": ["Term 1", "Term 2", "Term 3"],
            "start_date": pd.to_datetime(["2025-01-13", "2025-05-05", "2025-09-08"]),
            "end_date": pd.to_datetime(["2025-01-24", "2025-05-16", "2025-09-19"]),
        }
    )


@pytest.fixture
def make_submissions():
    """Build a fact_submission frame from (entity_id, category_id, answers[, itinerary_id]) tuples."""

    def _make(rows):
        records = []
        for i, row in enumerate(rows, start=1):
            entity_id, category_id, answers = row[:3]
            itinerary_id = row[3] if len(row) > 3 else "IT1"
            records.append(
                {
                    "submission_id": f"sub-{i:03d}",
                    "entity_id": entity_id,
                    "itinerary_id": itinerary_id,
                    "category_id": category_id,
                    "submitted_at": pd.Timestamp("2025-01-14") + pd.Timedelta(hours=i),
                    "answers": answers,
                }
            )
        return pd.DataFrame(
            records,
            columns=["submission_id", "entity_id", "itinerary_id", "category_id", "submitted_at", "answers"],
        )

    return _make
