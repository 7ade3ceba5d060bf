from __future__ import annotations

import calendar
import html
import io
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

import feedparser

from .models import FeedItem

_BODY_START = re.compile(r"<(item|entry)[\s>/]", re.IGNORECASE)


class FeedDocumentParser(Protocol):
    def validate(self, text: str) -> Optional[str]:  # pragma: no cover - interface
        ...

    def parse_pub_date(self, text: str) -> Optional[datetime]:  # pragma: no cover - interface
        ...

    def extract_body(self, text: str) -> str:  # pragma: no cover - interface
        ...

    def extract_items(self, text: str, source: Optional[str] = None) -> List[FeedItem]:  # pragma: no cover - interface
        ...

    def channel_link(self, text: str) -> Optional[str]:  # pragma: no cover - interface
        ...

    def to_renderable_document(self, text: str, title: str) -> str:  # pragma: no cover - interface
        ...

    def items_to_unified_document(self, items: Iterable[FeedItem], title: str) -> str:  # pragma: no cover - interface
        ...


def _struct_to_datetime(val: Any) -> Optional[datetime]:
    # feedparser normalizes parsed dates to UTC struct_time
    if isinstance(val, time.struct_time):
        try:
            return datetime.fromtimestamp(calendar.timegm(val), tz=timezone.utc)
        except (OverflowError, ValueError):
            return None
    return None


def _to_datetime(data: Dict[str, Any]) -> Optional[datetime]:
    """
    Convert feed/entry date fields to timezone-aware UTC datetime.
    Priority: published_parsed -> updated_parsed -> created_parsed -> None.
    """
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        dt = _struct_to_datetime(data.get(key))
        if dt is not None:
            return dt
    return None


def _entry_to_item(entry: Dict[str, Any], source: Optional[str]) -> FeedItem:
    title = (entry.get("title") or "").strip()
    summary = (entry.get("summary") or entry.get("description") or "").strip()
    link = (entry.get("link") or entry.get("feedburner_origlink") or "").strip()

    # Prefer entry id/guid if present
    guid = None
    for k in ("id", "guid"):
        v = entry.get(k)
        if isinstance(v, str) and v.strip():
            guid = v.strip()
            break

    return FeedItem(
        title=title,
        link=link,
        summary=summary,
        published_at=_to_datetime(entry),
        guid=guid,
        source=source,
    )


class FeedparserParser:
    """Feed document parser backed by feedparser."""

    def _parse(self, text: str) -> Any:
        # a stream keeps feedparser from treating the body as a URL or a file name
        return feedparser.parse(io.BytesIO(text.encode("utf-8")))

    def validate(self, text: str) -> Optional[str]:
        """Return a description of why *text* is not a usable feed, or None when it is."""
        if not text or not text.strip():
            return "Empty document"
        parsed = self._parse(text)
        exc = getattr(parsed, "bozo_exception", None)
        if getattr(parsed, "bozo", 0) and not isinstance(exc, feedparser.CharacterEncodingOverride):
            msg = "Invalid RSS/Atom feed"
            if exc:
                msg += f" ({exc})"
            return msg
        if not getattr(parsed, "version", ""):
            return "Document is not an RSS/Atom feed"
        return None

    def parse_pub_date(self, text: str) -> Optional[datetime]:
        parsed = self._parse(text)
        return _to_datetime(parsed.feed)

    def extract_body(self, text: str) -> str:
        """
        Return the content part of a feed, i.e. everything from its first item on.

        Channel metadata such as lastBuildDate changes on every request for some
        publishers and is left out so that fingerprints only follow the items.
        """
        match = _BODY_START.search(text)
        if match is None:
            return text.strip()
        return text[match.start():].strip()

    def extract_items(self, text: str, source: Optional[str] = None) -> List[FeedItem]:
        parsed = self._parse(text)
        entries = getattr(parsed, "entries", None) or []
        return [_entry_to_item(e, source) for e in entries]

    def channel_link(self, text: str) -> Optional[str]:
        link = self._parse(text).feed.get("link")
        return link.strip() if isinstance(link, str) and link.strip() else None

    def to_renderable_document(self, text: str, title: str) -> str:
        return render_items_document(self.extract_items(text, source=title), title, self.channel_link(text))

    def items_to_unified_document(self, items: Iterable[FeedItem], title: str) -> str:
        return render_items_document(items, title, None, show_source=True)


def render_items_document(
    items: Iterable[FeedItem],
    title: str,
    link: Optional[str] = None,
    *,
    show_source: bool = False,
) -> str:
    """Render items as a standalone HTML page."""
    esc = html.escape
    heading = esc(title)
    if link:
        heading = f'<a href="{esc(link, quote=True)}">{heading}</a>'
    parts = [
        "<!DOCTYPE html>",
        '<html><head><meta charset="utf-8">',
        f"<title>{esc(title)}</title>",
        "</head><body>",
        f"<h1>{heading}</h1>",
    ]
    for it in items:
        meta = []
        if show_source and it.source:
            meta.append(esc(it.source))
        if it.published_at:
            meta.append(it.published_at.strftime("%Y-%m-%d %H:%M"))
        parts.append('<article class="item">')
        parts.append(f'<h2><a href="{esc(it.link, quote=True)}">{esc(it.title or it.link)}</a></h2>')
        if meta:
            parts.append(f'<p class="meta">{" - ".join(meta)}</p>')
        if it.summary:
            # summaries are HTML fragments already sanitized by feedparser
            parts.append(f'<div class="summary">{it.summary}</div>')
        parts.append("</article>")
    parts.append("</body></html>")
    return "\n".join(parts)
