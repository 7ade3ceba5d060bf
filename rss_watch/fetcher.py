from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import requests

from .config import WatchOptions
from .exceptions import NetworkError

logger = logging.getLogger(__name__)

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
_CACHE_BUSTER_PARAM = "rsswatch"


def downgrade_scheme(url: str) -> str:
    """Return *url* with a leading https:// replaced by http://."""
    if url.startswith("https://"):
        return "http://" + url[len("https://"):]
    return url


def is_secure(url: str) -> bool:
    return url.startswith("https://")


def add_cache_buster(url: str, token: Optional[str] = None) -> str:
    parts = urlparse(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append((_CACHE_BUSTER_PARAM, token or str(int(time.time() * 1000))))
    return urlunparse(parts._replace(query=urlencode(query)))


class Fetcher:
    """
    Single HTTP GET of a feed URL.

    No retries happen here; the fallback chain lives in FeedSnapshot.

    requests.Session is not guaranteed thread-safe, so each worker thread gets
    its own session. A session passed in explicitly is shared as is.
    """

    def __init__(self, options: Optional[WatchOptions] = None, session: Optional[requests.Session] = None) -> None:
        self.options = options or WatchOptions()
        self._shared = session
        if session is not None:
            session.headers["User-Agent"] = self.options.user_agent
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._lock = threading.Lock()

    def _session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.options.user_agent
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def fetch(self, url: str, bypass_cache: bool) -> str:
        headers = {}
        target = url
        if bypass_cache:
            headers.update(_NO_CACHE_HEADERS)
            target = add_cache_buster(url)
        try:
            resp = self._session().get(target, headers=headers, timeout=self.options.timeout_sec)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Failed to fetch feed: {url} ({e})") from e

        # requests falls back to ISO-8859-1 for text/* without a charset
        content_type = resp.headers.get("Content-Type", "")
        if "charset" not in content_type.lower():
            resp.encoding = resp.apparent_encoding or "utf-8"
        logger.debug("Fetched %s (%d bytes, bypass_cache=%s)", url, len(resp.content), bypass_cache)
        return resp.text

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
