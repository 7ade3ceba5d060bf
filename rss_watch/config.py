from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

# Keys of the batch flags kept in the key-value store.
ASYNC_CHECKING_KEY = "asynchronousFeedChecking"
SHOW_UPDATE_POPUP_KEY = "showFeedUpdatePopup"
RENDER_FEEDS_KEY = "renderFeeds"

DEFAULT_USER_AGENT = "rss-watch/0.1 (+https://github.com/)"


@dataclass
class WatchOptions:
    timeout_sec: float = 15.0
    max_workers: int = 8
    max_redirects: int = 3
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, prefix: str = "RSS_WATCH_") -> "WatchOptions":
        """
        Build options from RSS_WATCH_* environment variables.

        Callers that want a .env file honoured should run dotenv's load_dotenv() first.
        """
        defaults = cls()
        return cls(
            timeout_sec=_env_float(prefix + "TIMEOUT", defaults.timeout_sec),
            max_workers=max(1, _env_int(prefix + "MAX_WORKERS", defaults.max_workers)),
            max_redirects=max(0, _env_int(prefix + "MAX_REDIRECTS", defaults.max_redirects)),
            user_agent=os.getenv(prefix + "USER_AGENT") or defaults.user_agent,
        )


@dataclass
class BatchSettings:
    """Flags read from the key-value store when a batch starts."""
    asynchronous_checking: bool = False
    show_update_popup: bool = True
    render_feeds: bool = True

    @classmethod
    def load(cls, store: Any) -> "BatchSettings":
        defaults = cls()
        return cls(
            asynchronous_checking=bool(store.get_value(ASYNC_CHECKING_KEY, defaults.asynchronous_checking)),
            show_update_popup=bool(store.get_value(SHOW_UPDATE_POPUP_KEY, defaults.show_update_popup)),
            render_feeds=bool(store.get_value(RENDER_FEEDS_KEY, defaults.render_feeds)),
        )


def _env_int(name: str, default: int) -> int:
    raw: Optional[str] = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw: Optional[str] = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default
