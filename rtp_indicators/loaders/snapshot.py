"""
Per-request snapshot of hierarchy, itineraries and submissions.

Every external fetch goes through one worker thread and is bounded by a
timeout. Each table is fetched at most once per snapshot; later calls reuse
the cached frame, so all indicators in one report see the same data.
"""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout

import pandas as pd

from ..config import FETCH_TIMEOUT_SECONDS
from ..errors import SourceTimeout
from ..hierarchy import EntityTree, build_entity_tree, normalise_id
from .sources import HierarchyProvider, SubmissionSource

logger = logging.getLogger(__name__)


def fetch_with_timeout(func, *args, timeout: float = FETCH_TIMEOUT_SECONDS, **kwargs):
    """Call func(*args, **kwargs) on a worker thread and wait at most `timeout` seconds.

    Raises SourceTimeout if the call has not returned in time. Exceptions
    raised by func propagate unchanged. The worker is a daemon thread: a
    source that never returns is abandoned and does not hold up interpreter
    exit.
    """
    future: Future = Future()

    def run():
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = func(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    threading.Thread(target=run, name="rtp-fetch", daemon=True).start()
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        name = getattr(func, "__qualname__", repr(func))
        raise SourceTimeout(f"{name} did not return within {timeout:g}s") from None


class RequestSnapshot:
    """Immutable view of the sources for the lifetime of one report request."""

    def __init__(
        self,
        source: SubmissionSource,
        provider: HierarchyProvider | None = None,
        scope_entity_id=None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self.source = source
        self.provider = provider if provider is not None else source
        self.scope_entity_id = None if scope_entity_id is None else normalise_id(scope_entity_id)
        self.timeout = timeout

        self._tree: EntityTree | None = None
        self._itineraries: pd.DataFrame | None = None
        self._submissions: dict[str, pd.DataFrame] = {}

    @property
    def tree(self) -> EntityTree:
        if self._tree is None:
            dim_entity = fetch_with_timeout(
                self.provider.fetch_hierarchy, self.scope_entity_id, timeout=self.timeout
            )
            self._tree = build_entity_tree(dim_entity)
        return self._tree

    @property
    def itineraries(self) -> pd.DataFrame:
        if self._itineraries is None:
            df = fetch_with_timeout(self.source.fetch_itineraries, timeout=self.timeout)
            df = df.assign(
                itinerary_id=df["itinerary_id"].map(normalise_id),
                start_date=pd.to_datetime(df["start_date"]),
            )
            self._itineraries = df.sort_values("start_date", kind="mergesort").reset_index(drop=True)
            logger.info("Snapshot holds %d itineraries", len(self._itineraries))
        return self._itineraries

    def submissions(self, itinerary_id) -> pd.DataFrame:
        """fact_submission rows for one itinerary within the snapshot scope."""
        itinerary_id = normalise_id(itinerary_id)
        if itinerary_id not in self._submissions:
            df = fetch_with_timeout(
                self.source.fetch_submissions,
                itinerary_id,
                self.scope_entity_id,
                timeout=self.timeout,
            )
            self._submissions[itinerary_id] = df
            logger.info("Fetched %d submissions for itinerary %s", len(df), itinerary_id)
        return self._submissions[itinerary_id]


def load_snapshot(
    source: SubmissionSource,
    provider: HierarchyProvider | None = None,
    scope_entity_id=None,
    timeout: float = FETCH_TIMEOUT_SECONDS,
) -> RequestSnapshot:
    """Build a snapshot and fetch its hierarchy and itineraries eagerly."""
    snapshot = RequestSnapshot(source, provider, scope_entity_id, timeout)
    snapshot.tree
    snapshot.itineraries
    return snapshot
