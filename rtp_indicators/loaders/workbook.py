"""
Loader for the RTP submissions workbook export.

Workbook: rtp_submissions_export.xlsx
    Entities:     entity_id, entity_type, name, parent_id
    Itineraries:  itinerary_id, label, start_date, end_date
    Submissions:  submission_id, entity_id, itinerary_id, category_id,
                  submitted_at, then one column per survey question

Header rows are located by signature, so title rows above the table are
tolerated. Question columns are folded into a per-submission ``answers``
dict; blank cells are left out of it.
"""

import logging

import openpyxl
import pandas as pd

from .utils import find_header_row, normalise_date, parse_answer, to_snake_case

logger = logging.getLogger(__name__)

ENTITY_SHEET = "Entities"
ITINERARY_SHEET = "Itineraries"
SUBMISSION_SHEET = "Submissions"

ENTITY_COLUMNS = ["entity_id", "entity_type", "name", "parent_id"]
ITINERARY_COLUMNS = ["itinerary_id", "label", "start_date", "end_date"]
SUBMISSION_COLUMNS = [
    "submission_id",
    "entity_id",
    "itinerary_id",
    "category_id",
    "submitted_at",
]


def _read_table(path, sheet_name: str, required: list[str]) -> list[dict]:
    """Return the rows under the header row of a sheet as dicts keyed by snake_case header."""
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet_name not in wb.sheetnames:
            raise ValueError(f"Workbook {path} has no '{sheet_name}' sheet")
        ws = wb[sheet_name]

        header_row = find_header_row(ws, set(required))
        if header_row is None:
            raise ValueError(f"No header row found in '{sheet_name}' sheet")

        rows = ws.iter_rows(min_row=header_row, values_only=True)
        headers = [to_snake_case(h) if h is not None else None for h in next(rows)]
        missing = [c for c in required if c not in headers]
        if missing:
            raise ValueError(f"'{sheet_name}' sheet is missing columns: {missing}")

        records = []
        for values in rows:
            if all(v is None for v in values):
                continue
            records.append(
                {h: v for h, v in zip(headers, values) if h is not None}
            )
        return records
    finally:
        wb.close()


def _as_id(val) -> str | None:
    val = parse_answer(val)
    return None if val is None else str(val)


def load_entities(path) -> pd.DataFrame:
    """Load the Entities sheet.

    Returns
    -------
    dim_entity DataFrame: entity_id, entity_type, name, parent_id.
    Ids are strings; parent_id is null for regions.
    """
    rows = []
    for record in _read_table(path, ENTITY_SHEET, ENTITY_COLUMNS):
        entity_id = _as_id(record.get("entity_id"))
        if entity_id is None:
            continue
        rows.append(
            {
                "entity_id": entity_id,
                "entity_type": str(record.get("entity_type") or "").strip().lower(),
                "name": parse_answer(record.get("name")) or entity_id,
                "parent_id": _as_id(record.get("parent_id")),
            }
        )

    df = pd.DataFrame(rows, columns=ENTITY_COLUMNS)
    logger.info("Loaded %d entities from %s", len(df), path)
    return df


def load_itineraries(path) -> pd.DataFrame:
    """Load the Itineraries sheet, sorted by start_date."""
    rows = []
    for record in _read_table(path, ITINERARY_SHEET, ITINERARY_COLUMNS):
        itinerary_id = _as_id(record.get("itinerary_id"))
        if itinerary_id is None:
            continue
        rows.append(
            {
                "itinerary_id": itinerary_id,
                "label": parse_answer(record.get("label")) or itinerary_id,
                "start_date": normalise_date(record.get("start_date")),
                "end_date": normalise_date(record.get("end_date")),
            }
        )

    df = pd.DataFrame(rows, columns=ITINERARY_COLUMNS)
    if not df.empty:
        df = df.sort_values("start_date", kind="mergesort").reset_index(drop=True)
    logger.info("Loaded %d itineraries from %s", len(df), path)
    return df


def load_submissions(path) -> pd.DataFrame:
    """Load the Submissions sheet.

    Returns
    -------
    fact_submission DataFrame: submission_id, entity_id, itinerary_id,
    category_id, submitted_at, answers (dict of question -> answer).
    Rows without a submission or entity id are skipped with a warning.
    """
    rows = []
    skipped = 0
    for record in _read_table(path, SUBMISSION_SHEET, SUBMISSION_COLUMNS):
        submission_id = _as_id(record.get("submission_id"))
        entity_id = _as_id(record.get("entity_id"))
        if submission_id is None or entity_id is None:
            skipped += 1
            continue

        answers = {}
        for question, value in record.items():
            if question in SUBMISSION_COLUMNS:
                continue
            value = parse_answer(value)
            if value is not None:
                answers[question] = value

        rows.append(
            {
                "submission_id": submission_id,
                "entity_id": entity_id,
                "itinerary_id": _as_id(record.get("itinerary_id")),
                "category_id": str(record.get("category_id") or "").strip().lower(),
                "submitted_at": normalise_date(record.get("submitted_at")),
                "answers": answers,
            }
        )

    if skipped:
        logger.warning("Skipped %d submission rows without an id", skipped)
    df = pd.DataFrame(rows, columns=SUBMISSION_COLUMNS + ["answers"])
    logger.info("Loaded %d submissions from %s", len(df), path)
    return df


def export_workbook(
    path,
    dim_entity: pd.DataFrame,
    dim_itinerary: pd.DataFrame,
    fact_submission: pd.DataFrame,
) -> None:
    """Write the three tables in the layout the loaders above read back."""
    wb = openpyxl.Workbook()

    ws = wb.active
    ws.title = ENTITY_SHEET
    ws.append(ENTITY_COLUMNS)
    for row in dim_entity[ENTITY_COLUMNS].itertuples(index=False):
        ws.append([None if pd.isna(v) else v for v in row])

    ws = wb.create_sheet(ITINERARY_SHEET)
    ws.append(ITINERARY_COLUMNS)
    for row in dim_itinerary[ITINERARY_COLUMNS].itertuples(index=False):
        ws.append(
            [
                row.itinerary_id,
                row.label,
                row.start_date.to_pydatetime() if pd.notna(row.start_date) else None,
                row.end_date.to_pydatetime() if pd.notna(row.end_date) else None,
            ]
        )

    questions = sorted({q for answers in fact_submission["answers"] for q in answers})
    ws = wb.create_sheet(SUBMISSION_SHEET)
    ws.append(SUBMISSION_COLUMNS + questions)
    for row in fact_submission.itertuples(index=False):
        submitted_at = pd.Timestamp(row.submitted_at) if pd.notna(row.submitted_at) else None
        ws.append(
            [
                row.submission_id,
                row.entity_id,
                row.itinerary_id,
                row.category_id,
                submitted_at.to_pydatetime() if submitted_at is not None else None,
            ]
            + [row.answers.get(q) for q in questions]
        )

    wb.save(path)
    logger.info("Wrote %d submissions to %s", len(fact_submission), path)
