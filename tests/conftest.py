from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from rss_watch.exceptions import NetworkError
from rss_watch.models import Bookmark, FeedItem, FeedStatus
from rss_watch.parser import FeedparserParser
from rss_watch.store import MemoryBookmarks, MemoryStore


def make_rss(
    title: str = "Example",
    items: Sequence[Tuple[str, str]] = (("First post", "https://example.com/1"),),
    pub_date: Optional[str] = "Mon, 06 Sep 2021 16:45:00 +0000",
    extra: str = "",
) -> str:
    parts = [
        '<rss version="2.0"><channel>',
        f"<title>{title}</title>",
        "<link>https://example.com/</link>",
        "<description>Example feed</description>",
    ]
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    parts.append(extra)
    for item_title, link in items:
        parts.append(
            f"<item><title>{item_title}</title><link>{link}</link>"
            f"<guid>{link}</guid><description>About {item_title}</description></item>"
        )
    parts.append("</channel></rss>")
    return "\n".join(parts)


def make_redirect(target: str) -> str:
    return make_rss(
        title="Moved",
        items=(),
        pub_date=None,
        extra=f"<redirect><newLocation> {target} </newLocation></redirect>",
    )


Response = Union[str, Exception, Callable[[str, bool], str]]


class FakeFetcher:
    """
    Scripted fetcher. Responses are keyed by URL, or by (URL, bypass_cache) for
    attempts that must behave differently; unknown URLs fail with NetworkError.
    """

    def __init__(self, responses: Optional[Dict[object, Response]] = None) -> None:
        self.responses: Dict[object, Response] = dict(responses or {})
        self.calls: List[Tuple[str, bool]] = []

    def fetch(self, url: str, bypass_cache: bool) -> str:
        self.calls.append((url, bypass_cache))
        if (url, bypass_cache) in self.responses:
            resp = self.responses[(url, bypass_cache)]
        elif url in self.responses:
            resp = self.responses[url]
        else:
            raise NetworkError(f"unreachable: {url}")
        if isinstance(resp, Exception):
            raise resp
        if callable(resp):
            return resp(url, bypass_cache)
        return resp

    def urls(self) -> List[str]:
        return [u for u, _ in self.calls]

    def close(self) -> None:
        pass


class RecordingUI:
    def __init__(self) -> None:
        self.progress: List[str] = []
        self.busy: List[bool] = []
        self.states: List[Tuple[str, FeedStatus]] = []
        self.tabs: List[Tuple[str, str]] = []
        self.displayed: List[Tuple[str, Optional[str], List[FeedItem]]] = []
        self.notifications: List[str] = []

    def set_progress(self, text: str) -> None:
        self.progress.append(text)

    def set_busy(self, busy: bool) -> None:
        self.busy.append(busy)

    def set_feed_state(self, identity: str, status: FeedStatus) -> None:
        self.states.append((identity, status))

    def open_tab(self, document: str, title: str) -> None:
        self.tabs.append((title, document))

    def display_items(self, title: str, link: Optional[str], items: Sequence[FeedItem]) -> None:
        self.displayed.append((title, link, list(items)))

    def notify(self, message: str) -> None:
        self.notifications.append(message)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def parser() -> FeedparserParser:
    return FeedparserParser()


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def bookmarks() -> MemoryBookmarks:
    return MemoryBookmarks([
        Bookmark("news", "News"),
        Bookmark("a", "Feed A", "https://a.example/rss"),
        Bookmark("b", "Feed B", "https://b.example/rss"),
        Bookmark("c", "Feed C", "http://c.example/rss"),
    ])
