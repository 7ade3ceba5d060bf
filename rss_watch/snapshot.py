from __future__ import annotations

import hashlib
import html
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from .exceptions import NetworkError, RedirectLoopExceeded, RSSWatchError, ValidationError
from .fetcher import Fetcher, downgrade_scheme, is_secure
from .models import Bookmark, FeedItem, FeedRecord, FeedStatus
from .parser import FeedDocumentParser
from .redirect import resolve_redirect
from .store import BookmarkStore, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 3


def fingerprint(content: str) -> str:
    """Deterministic, order-sensitive hash of a feed's canonical content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def next_status(
    previous_fingerprint: Optional[str],
    previous_pub_date: Optional[datetime],
    new_fingerprint: Optional[str],
    new_pub_date: Optional[datetime],
    error: Optional[BaseException] = None,
) -> FeedStatus:
    """
    Status of a feed after a refresh.

    With a valid publication date, a feed is only UPDATED when the date moved
    forward and the content changed, or when no date was known before. A changed
    fingerprint under a date that did not advance stays OLD.
    """
    if error is not None:
        return FeedStatus.ERROR
    # stored fingerprints may carry surrounding whitespace
    previous = previous_fingerprint.strip() if previous_fingerprint else None
    changed = new_fingerprint != previous
    if new_pub_date is not None:
        if previous_pub_date is None:
            return FeedStatus.UPDATED
        if new_pub_date > previous_pub_date and changed:
            return FeedStatus.UPDATED
        return FeedStatus.OLD
    return FeedStatus.UPDATED if changed else FeedStatus.OLD


class FeedSnapshot:
    """
    One feed's state for the duration of a refresh request.

    The snapshot is built from the bookmark (title, source URL) and the record
    persisted under the feed identity, and writes that record back after every
    refresh or status change. Concurrent refreshes of the same identity are not
    guarded against here.
    """

    def __init__(
        self,
        bookmark: Bookmark,
        store: KeyValueStore,
        fetcher: Fetcher,
        parser: FeedDocumentParser,
        *,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> None:
        self.bookmark = bookmark
        self._store = store
        self._fetcher = fetcher
        self._parser = parser
        self.max_redirects = max_redirects
        self.record = FeedRecord.from_dict(bookmark.id, store.get_value(bookmark.id, None))
        self.record.title = bookmark.title
        self.previous_fingerprint: Optional[str] = self.record.fingerprint
        self.previous_pub_date: Optional[datetime] = self.record.pub_date
        self.raw_body: Optional[str] = None
        self.error: Optional[Exception] = None
        self.redirect_target: Optional[str] = None

    @classmethod
    def load(
        cls,
        identity: str,
        bookmarks: BookmarkStore,
        store: KeyValueStore,
        fetcher: Fetcher,
        parser: FeedDocumentParser,
        *,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> "FeedSnapshot":
        return cls(bookmarks.get(identity), store, fetcher, parser, max_redirects=max_redirects)

    @property
    def identity(self) -> str:
        return self.bookmark.id

    @property
    def title(self) -> str:
        return self.record.title

    @property
    def url(self) -> str:
        return self.bookmark.url or ""

    @property
    def final_url(self) -> str:
        return self.redirect_target or self.url

    @property
    def status(self) -> FeedStatus:
        return self.record.status

    @property
    def fingerprint(self) -> Optional[str]:
        return self.record.fingerprint

    @property
    def pub_date(self) -> Optional[datetime]:
        return self.record.pub_date

    def refresh(self) -> Tuple[FeedStatus, Optional[Exception]]:
        """Download the feed, fingerprint it, update and persist its status."""
        self.previous_fingerprint = self.record.fingerprint
        self.previous_pub_date = self.record.pub_date
        self.raw_body = None
        self.error = None
        self.redirect_target = None

        try:
            body = self._download_following_redirects()
        except RSSWatchError as e:
            logger.warning("%s (%s): %s", self.title, self.url, e)
            self.error = e
        else:
            self.raw_body = body
            self.record.pub_date = self._parser.parse_pub_date(body)
            self.record.fingerprint = fingerprint(self._parser.extract_body(body))

        self.record.status = next_status(
            self.previous_fingerprint,
            self.previous_pub_date,
            self.record.fingerprint,
            self.record.pub_date,
            self.error,
        )
        self.save()
        return self.record.status, self.error

    def set_status(self, status: FeedStatus, error: Optional[Exception] = None) -> None:
        """
        Override the status (mark as read/updated) and persist it right away.

        ERROR needs the error that caused it; other statuses clear the error.
        """
        if status is FeedStatus.ERROR and error is None:
            raise ValueError("ERROR status requires an error")
        self.record.status = status
        self.error = error if status is FeedStatus.ERROR else None
        self.save()

    def mark_error(self, error: Exception) -> None:
        self.set_status(FeedStatus.ERROR, error)

    def save(self) -> None:
        self._store.set_value(self.identity, self.record.to_dict())

    def items(self) -> List[FeedItem]:
        if self.raw_body is None:
            return []
        return self._parser.extract_items(self.raw_body, source=self.title)

    @property
    def channel_link(self) -> Optional[str]:
        if self.raw_body is None:
            return None
        return self._parser.channel_link(self.raw_body)

    def render(self) -> str:
        """Renderable document of the last downloaded body."""
        if self.raw_body is None:
            raise ValidationError(f"Feed has not been downloaded: {self.title}")
        return self._parser.to_renderable_document(self.raw_body, self.title)

    def _download_following_redirects(self) -> str:
        url = self.url
        hops = 0
        while True:
            body = self._download(url)
            target = resolve_redirect(body)
            if target is None:
                return body
            if hops >= self.max_redirects:
                raise RedirectLoopExceeded(
                    f"Feed redirected more than {self.max_redirects} time(s): {self.url} -> {target}"
                )
            hops += 1
            logger.info("%s moved to %s", self.title, target)
            self.redirect_target = target
            url = target

    def _download(self, url: str) -> str:
        """
        Fallback chain: no-cache fetch, cached fetch, then the same pair again over
        plain http when the URL is https. Raises the last error when all fail.
        """
        candidates = [url]
        if is_secure(url):
            candidates.append(downgrade_scheme(url))
        last_error: Optional[RSSWatchError] = None
        for candidate in candidates:
            for bypass_cache in (True, False):
                try:
                    return self._download_once(candidate, bypass_cache)
                except (NetworkError, ValidationError) as e:
                    logger.debug("Attempt failed for %s (bypass_cache=%s): %s", candidate, bypass_cache, e)
                    last_error = e
        assert last_error is not None
        raise last_error

    def _download_once(self, url: str, bypass_cache: bool) -> str:
        text = self._fetcher.fetch(url, bypass_cache)
        problem = self._parser.validate(text)
        decoded = html.unescape(text)
        # a standalone <redirect> document is not a feed but still a usable answer
        if problem and resolve_redirect(decoded) is None:
            raise ValidationError(f"{problem}: {url}")
        return decoded
