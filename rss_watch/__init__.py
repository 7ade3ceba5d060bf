"""
rss_watch

Checks a set of RSS/Atom feeds for changes and aggregates them into unified views.

Core ideas:
- Input: feed bookmarks grouped in collections, plus a key-value store for state
- Process: download (with fallbacks) → validate → follow redirects → fingerprint → status
- Output: per-feed status (updated / old / error), opened documents, unified views

Example
-------
from rss_watch import BatchOrchestrator, Bookmark, MemoryBookmarks, MemoryStore, set_collection

bookmarks = MemoryBookmarks([
    Bookmark("news", "News"),
    Bookmark("bbc", "BBC World", "https://feeds.bbci.co.uk/news/world/rss.xml"),
])
store = MemoryStore()
set_collection(store, "news", ["bbc"])

watcher = BatchOrchestrator(bookmarks, store)
job = watcher.check_feeds("news")
for outcome in job.outcomes:
    print(outcome.snapshot.title, outcome.status.value)
"""
from .config import WatchOptions
from .exceptions import NetworkError, RedirectLoopExceeded, RSSWatchError, UnexpectedError, ValidationError
from .models import Bookmark, FeedItem, FeedOutcome, FeedRecord, FeedStatus
from .orchestrator import BatchJob, BatchKind, BatchOrchestrator, BatchState
from .snapshot import FeedSnapshot, next_status
from .store import JsonFileStore, MemoryBookmarks, MemoryStore, set_collection

__all__ = [
    "BatchJob",
    "BatchKind",
    "BatchOrchestrator",
    "BatchState",
    "Bookmark",
    "FeedItem",
    "FeedOutcome",
    "FeedRecord",
    "FeedSnapshot",
    "FeedStatus",
    "JsonFileStore",
    "MemoryBookmarks",
    "MemoryStore",
    "NetworkError",
    "RSSWatchError",
    "RedirectLoopExceeded",
    "UnexpectedError",
    "ValidationError",
    "WatchOptions",
    "next_status",
    "set_collection",
]
