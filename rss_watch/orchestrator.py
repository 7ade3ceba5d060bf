from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, List, Optional

from .aggregator import merge, unify
from .config import BatchSettings, WatchOptions
from .exceptions import RSSWatchError, UnexpectedError
from .fetcher import Fetcher
from .models import FeedItem, FeedOutcome, FeedStatus
from .parser import FeedDocumentParser, FeedparserParser
from .reporter import NotificationReporter
from .snapshot import FeedSnapshot
from .store import BookmarkStore, KeyValueStore, get_collection
from .ui import FeedUI, NullUI

logger = logging.getLogger(__name__)


class BatchKind(str, Enum):
    CHECK = "check"
    OPEN = "open"
    UNIFY = "unify"


class BatchState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    RUNNING = "running"
    FINISHING = "finishing"


_ACTION_NAMES = {
    BatchKind.CHECK: "Checking",
    BatchKind.OPEN: "Opening",
    BatchKind.UNIFY: "Merging",
}
PREPARING = "Preparing"
RECEIVED = "received"
LOADED = "loaded"
COMPUTING_UNIFIED_VIEW = "Computing unified view"

STALE_STATUSES = frozenset({FeedStatus.OLD, FeedStatus.ERROR})
UNREAD_STATUSES = frozenset({FeedStatus.UPDATED})
UNREAD_OR_ERROR_STATUSES = frozenset({FeedStatus.UPDATED, FeedStatus.ERROR})


@dataclass
class BatchJob:
    kind: BatchKind
    collection_id: str
    title: str
    asynchronous: bool = False
    snapshots: List[FeedSnapshot] = field(default_factory=list)
    outcomes: List[FeedOutcome] = field(default_factory=list)
    unified_items: List[FeedItem] = field(default_factory=list)
    document: Optional[str] = None

    @property
    def updated_count(self) -> int:
        return sum(1 for o in self.outcomes if o.updated)


class BatchOrchestrator:
    """
    Runs check / open / unify batches over the feeds of a collection.

    Pipeline: select (by stored status) → refresh each feed (sequentially or on a
    bounded thread pool) → per-feed action → finish (notification, unified view).

    Only one batch runs at a time; starting another while one is in progress is
    ignored and returns None.
    """

    def __init__(
        self,
        bookmarks: BookmarkStore,
        store: KeyValueStore,
        *,
        fetcher: Optional[Fetcher] = None,
        parser: Optional[FeedDocumentParser] = None,
        ui: Optional[FeedUI] = None,
        options: Optional[WatchOptions] = None,
    ) -> None:
        self.options = options or WatchOptions()
        self.bookmarks = bookmarks
        self.store = store
        self.fetcher = fetcher or Fetcher(self.options)
        self.parser = parser or FeedparserParser()
        self.ui = ui or NullUI()
        self.reporter = NotificationReporter(self.ui)
        self._state = BatchState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> BatchState:
        return self._state

    # Batch commands

    def check_feeds(self, collection_id: str) -> Optional[BatchJob]:
        """Refresh the read and errored feeds of a collection."""
        return self._run_batch(BatchKind.CHECK, collection_id, STALE_STATUSES)

    def open_updated_feeds(self, collection_id: str) -> Optional[BatchJob]:
        """Open every unread feed of a collection in its own tab and mark it read."""
        return self._run_batch(BatchKind.OPEN, collection_id, UNREAD_STATUSES)

    def open_unified_feed(self, collection_id: str) -> Optional[BatchJob]:
        """Merge the unread feeds of a collection into one view named after the collection."""
        return self._run_batch(BatchKind.UNIFY, collection_id, UNREAD_STATUSES)

    # Single feed commands

    def open_feed(self, feed_id: str) -> FeedOutcome:
        settings = BatchSettings.load(self.store)
        snapshot = self._load_snapshot(feed_id)
        job = BatchJob(BatchKind.OPEN, "", snapshot.title, asynchronous=False)
        outcome = self._process(job, snapshot, settings)
        if outcome.error is None:
            self.ui.display_items(snapshot.title, snapshot.channel_link, outcome.items)
        return outcome

    def mark_feed_as_read(self, feed_id: str) -> FeedSnapshot:
        return self._mark(self._load_snapshot(feed_id), FeedStatus.OLD)

    def mark_feed_as_updated(self, feed_id: str) -> FeedSnapshot:
        return self._mark(self._load_snapshot(feed_id), FeedStatus.UPDATED)

    def mark_all_as_read(self, collection_id: str) -> List[FeedSnapshot]:
        return [self._mark(s, FeedStatus.OLD) for s in self._select(collection_id, UNREAD_OR_ERROR_STATUSES)]

    def mark_all_as_updated(self, collection_id: str) -> List[FeedSnapshot]:
        return [self._mark(s, FeedStatus.UPDATED) for s in self._select(collection_id, STALE_STATUSES)]

    # Batch machinery

    def _run_batch(self, kind: BatchKind, collection_id: str, statuses: Collection[FeedStatus]) -> Optional[BatchJob]:
        with self._lock:
            if self._state is not BatchState.IDLE:
                logger.info("Batch %s on %s ignored: another batch is %s", kind.value, collection_id, self._state.value)
                return None
            self._state = BatchState.SELECTING

        try:
            settings = BatchSettings.load(self.store)
            self.ui.set_busy(True)
            job = BatchJob(
                kind=kind,
                collection_id=collection_id,
                title=self._collection_title(collection_id),
                asynchronous=settings.asynchronous_checking,
            )
            action = _ACTION_NAMES[kind]
            for snapshot in self._select(collection_id, statuses):
                self.ui.set_progress(f"{action if job.asynchronous else PREPARING}: {snapshot.title}")
                job.snapshots.append(snapshot)

            if job.snapshots:
                self._state = BatchState.RUNNING
                if job.asynchronous:
                    self._run_concurrently(job, settings)
                else:
                    self._run_sequentially(job, settings)

            self._state = BatchState.FINISHING
            self._finish(job, settings)
            return job
        finally:
            self.ui.set_progress("")
            self.ui.set_busy(False)
            self._state = BatchState.IDLE

    def _run_sequentially(self, job: BatchJob, settings: BatchSettings) -> None:
        for snapshot in job.snapshots:
            job.outcomes.append(self._process(job, snapshot, settings))

    def _run_concurrently(self, job: BatchJob, settings: BatchSettings) -> None:
        workers = max(1, min(self.options.max_workers, len(job.snapshots)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rss-watch") as ex:
            futures = [ex.submit(self._process, job, s, settings) for s in job.snapshots]
            for fu in as_completed(futures):
                job.outcomes.append(fu.result())

    def _process(self, job: BatchJob, snapshot: FeedSnapshot, settings: BatchSettings) -> FeedOutcome:
        """Run the batch action for one feed. Never raises: failures end up on the outcome."""
        outcome = FeedOutcome(snapshot=snapshot)
        try:
            self._action(job.kind)(job, snapshot, settings, outcome)
        except RSSWatchError as e:
            logger.warning("Processing feed %s failed: %s", snapshot.title, e)
            self._record_failure(snapshot, outcome, e)
        except Exception as e:
            logger.exception("Processing feed %s failed", snapshot.title)
            self._record_failure(snapshot, outcome, UnexpectedError(str(e)))
        return outcome

    def _record_failure(self, snapshot: FeedSnapshot, outcome: FeedOutcome, error: RSSWatchError) -> None:
        outcome.error = error
        outcome.updated = False
        outcome.items = []
        try:
            snapshot.mark_error(error)
            self.ui.set_feed_state(snapshot.identity, FeedStatus.ERROR)
        except Exception:
            logger.exception("Could not record error state for %s", snapshot.title)

    def _action(self, kind: BatchKind) -> Callable[[BatchJob, FeedSnapshot, BatchSettings, FeedOutcome], None]:
        return {
            BatchKind.CHECK: self._check_one,
            BatchKind.OPEN: self._open_one,
            BatchKind.UNIFY: self._unify_one,
        }[kind]

    def _check_one(self, job: BatchJob, snapshot: FeedSnapshot, settings: BatchSettings, outcome: FeedOutcome) -> None:
        if not job.asynchronous:
            self.ui.set_progress(f"{_ACTION_NAMES[BatchKind.CHECK]}: {snapshot.title}")
        status, error = snapshot.refresh()
        if error is not None:
            self.ui.set_progress(f"{snapshot.title} : {error}")
        elif job.asynchronous:
            self.ui.set_progress(f"{snapshot.title} : {RECEIVED}")
        self.ui.set_feed_state(snapshot.identity, status)
        outcome.error = error
        outcome.updated = status is FeedStatus.UPDATED

    def _open_one(self, job: BatchJob, snapshot: FeedSnapshot, settings: BatchSettings, outcome: FeedOutcome) -> None:
        if not job.asynchronous:
            self.ui.set_progress(f"{_ACTION_NAMES[BatchKind.OPEN]}: {snapshot.title}")
        _, error = snapshot.refresh()
        if error is not None:
            raise error
        document = snapshot.render()
        outcome.items = snapshot.items()
        if settings.render_feeds:
            self.ui.open_tab(document, snapshot.title)
        snapshot.set_status(FeedStatus.OLD)
        self.ui.set_feed_state(snapshot.identity, FeedStatus.OLD)
        self.ui.set_progress(f"{snapshot.title} {LOADED}")

    def _unify_one(self, job: BatchJob, snapshot: FeedSnapshot, settings: BatchSettings, outcome: FeedOutcome) -> None:
        if not job.asynchronous:
            self.ui.set_progress(f"{_ACTION_NAMES[BatchKind.UNIFY]}: {snapshot.title}")
        _, error = snapshot.refresh()
        if error is not None:
            raise error
        outcome.items = snapshot.items()
        snapshot.set_status(FeedStatus.OLD)
        self.ui.set_feed_state(snapshot.identity, FeedStatus.OLD)
        self.ui.set_progress(COMPUTING_UNIFIED_VIEW)

    def _finish(self, job: BatchJob, settings: BatchSettings) -> None:
        try:
            if job.kind is BatchKind.CHECK:
                self.reporter.report(job.updated_count, enabled=settings.show_update_popup)
            elif job.kind is BatchKind.OPEN and job.outcomes:
                self.ui.display_items(job.title, None, merge(job.outcomes))
            elif job.kind is BatchKind.UNIFY and job.outcomes:
                job.unified_items, job.document = unify(job.outcomes, job.title, self.parser)
                self.ui.display_items(job.title, None, job.unified_items)
                if settings.render_feeds:
                    self.ui.open_tab(job.document, job.title)
        except Exception:
            logger.exception("Finishing %s batch on %s failed", job.kind.value, job.collection_id)

    # Helpers

    def _load_snapshot(self, feed_id: str) -> FeedSnapshot:
        return FeedSnapshot.load(
            feed_id,
            self.bookmarks,
            self.store,
            self.fetcher,
            self.parser,
            max_redirects=self.options.max_redirects,
        )

    def _select(self, collection_id: str, statuses: Collection[FeedStatus]) -> List[FeedSnapshot]:
        selected: List[FeedSnapshot] = []
        for feed_id in get_collection(self.store, collection_id):
            try:
                snapshot = self._load_snapshot(feed_id)
            except KeyError as e:
                logger.warning("Skipping feed %s: %s", feed_id, e)
                continue
            if snapshot.status in statuses:
                selected.append(snapshot)
        return selected

    def _collection_title(self, collection_id: str) -> str:
        try:
            return self.bookmarks.get(collection_id).title
        except KeyError:
            return collection_id

    def _mark(self, snapshot: FeedSnapshot, status: FeedStatus) -> FeedSnapshot:
        snapshot.set_status(status)
        self.ui.set_feed_state(snapshot.identity, status)
        return snapshot
