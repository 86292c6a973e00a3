"""Data ingestion: workbook loaders, submission sources and request snapshots."""

from .snapshot import RequestSnapshot, fetch_with_timeout, load_snapshot
from .sources import FrameSource, HierarchyProvider, SubmissionSource, WorkbookSource
from .workbook import export_workbook, load_entities, load_itineraries, load_submissions

__all__ = [
    "RequestSnapshot",
    "fetch_with_timeout",
    "load_snapshot",
    "FrameSource",
    "HierarchyProvider",
    "SubmissionSource",
    "WorkbookSource",
    "export_workbook",
    "load_entities",
    "load_itineraries",
    "load_submissions",
]
