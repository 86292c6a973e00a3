"""
Shared utilities for data ingestion: header detection, date normalisation,
column renaming, answer coercion.
"""

import logging
import re
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert Excel serial number, date string or datetime to pd.Timestamp.

    Excel serial numbers use the 1899-12-30 epoch. Native datetime objects
    are cast directly. Returns None for empty or unparseable values.
    """
    if val is None or (isinstance(val, str) and not val.strip()):
        return None
    if isinstance(val, pd.Timestamp):
        return val
    if isinstance(val, bool):
        logger.warning("Could not parse date value: %s", val)
        return None
    if isinstance(val, (int, float)):
        try:
            return pd.Timestamp("1899-12-30") + pd.Timedelta(days=int(val))
        except (ValueError, OverflowError):
            logger.warning("Could not convert serial number %s to date", val)
            return None
    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError):
        logger.warning("Could not parse date value: %s", val)
        return None
    return None if pd.isna(ts) else ts


def to_snake_case(name: str) -> str:
    """Convert a column header to snake_case.

    "Teacher Skill Q29" -> "teacher_skill_q29", "Boys Enrolled" ->
    "boys_enrolled", "entityId" -> "entity_id".
    """
    s = str(name).strip()
    s = s.replace("%", "pct").replace("/", "_per_").replace("(", "").replace(")", "")
    # CamelCase to snake_case before case is lost
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    s = re.sub(r"[^a-zA-Z0-9]+", "_", s)
    s = s.lower().strip("_")
    return re.sub(r"_+", "_", s)


def find_header_row(
    sheet,
    signature: set[str],
    max_rows: int = 20,
) -> int | None:
    """Scan an openpyxl sheet for the row containing signature headers.

    Cells are compared after snake_casing, so "Entity ID" matches
    "entity_id". Returns the 1-based row index where at least two cells
    match, or None if not found within `max_rows`.
    """
    for row_idx, row in enumerate(sheet.iter_rows(max_row=max_rows, values_only=True), start=1):
        matches = sum(1 for value in row if value is not None and to_snake_case(value) in signature)
        if matches >= 2:
            return row_idx
    return None


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, str):
        # Skip formula strings and text labels
        val = val.strip()
        if val.startswith("=") or not val:
            return None
        if val.endswith("%"):
            val = val[:-1]
        try:
            return float(val)
        except ValueError:
            return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


def parse_answer(val: Any) -> Any:
    """Normalise one survey answer cell.

    Empty cells and blank strings become None, strings are stripped,
    whole floats become ints (Excel stores counts as floats). Everything
    else is returned unchanged so the formulas can grade or reject it.
    """
    if val is None:
        return None
    if isinstance(val, str):
        val = val.strip()
        return val or None
    if isinstance(val, float):
        if pd.isna(val):
            return None
        if val.is_integer():
            return int(val)
    return val
