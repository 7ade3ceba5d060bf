from __future__ import annotations

import logging
import os
import re
from typing import List, Optional, Protocol, Sequence

from .models import FeedItem, FeedStatus, css_class

logger = logging.getLogger(__name__)


class FeedUI(Protocol):
    """One-way notifications from the engine to whatever displays the feeds."""

    def set_progress(self, text: str) -> None:  # pragma: no cover - interface
        ...

    def set_busy(self, busy: bool) -> None:  # pragma: no cover - interface
        ...

    def set_feed_state(self, identity: str, status: FeedStatus) -> None:  # pragma: no cover - interface
        ...

    def open_tab(self, document: str, title: str) -> None:  # pragma: no cover - interface
        ...

    def display_items(self, title: str, link: Optional[str], items: Sequence[FeedItem]) -> None:  # pragma: no cover - interface
        ...

    def notify(self, message: str) -> None:  # pragma: no cover - interface
        ...


class NullUI:
    def set_progress(self, text: str) -> None:
        pass

    def set_busy(self, busy: bool) -> None:
        pass

    def set_feed_state(self, identity: str, status: FeedStatus) -> None:
        pass

    def open_tab(self, document: str, title: str) -> None:
        pass

    def display_items(self, title: str, link: Optional[str], items: Sequence[FeedItem]) -> None:
        pass

    def notify(self, message: str) -> None:
        pass


def _slug(title: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", title).strip("-").lower()
    return slug or "feed"


class ConsoleUI(NullUI):
    """
    Terminal rendition of the UI surface: progress and popups go to the log,
    opened tabs are written as HTML files under *output_dir*.
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = output_dir
        self.written: List[str] = []

    def set_progress(self, text: str) -> None:
        if text:
            logger.info(text)

    def set_feed_state(self, identity: str, status: FeedStatus) -> None:
        logger.debug("%s -> %s", identity, css_class(status))

    def open_tab(self, document: str, title: str) -> None:
        if not self.output_dir:
            return
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, f"{_slug(title)}.html")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(document)
        self.written.append(path)
        logger.info("Wrote %s", path)

    def display_items(self, title: str, link: Optional[str], items: Sequence[FeedItem]) -> None:
        print(f"== {title} ({len(items)} items)")
        for item in items:
            when = item.published_at.strftime("%Y-%m-%d %H:%M") if item.published_at else "----------------"
            print(f"{when}  {item.title}  <{item.link}>")

    def notify(self, message: str) -> None:
        print(message)
