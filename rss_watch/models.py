from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .snapshot import FeedSnapshot


class FeedStatus(str, Enum):
    UPDATED = "updated"
    OLD = "old"
    ERROR = "error"


_CSS_CLASSES = {
    FeedStatus.UPDATED: "feedUnread",
    FeedStatus.OLD: "feedRead",
    FeedStatus.ERROR: "feedError",
}


def css_class(status: FeedStatus) -> str:
    """Visual class of a feed entry; the three classes are mutually exclusive."""
    return _CSS_CLASSES[status]


@dataclass(frozen=True)
class Bookmark:
    id: str
    title: str
    url: Optional[str] = None


@dataclass(frozen=True)
class FeedItem:
    """
    One entry of a feed, as shown in item panels and unified views.
    """
    title: str
    link: str
    summary: str = ""
    published_at: Optional[datetime] = None
    guid: Optional[str] = None
    source: Optional[str] = None


_LEGACY_FIELDS = ("bkmrkId", "isBkmrk")


@dataclass
class FeedRecord:
    """
    Persisted state of one feed, stored under its identity.

    pub_date is kept as a timezone-aware datetime in memory and as an
    ISO-8601 string in the store.
    """
    id: str
    title: str = ""
    fingerprint: Optional[str] = None
    pub_date: Optional[datetime] = None
    status: FeedStatus = FeedStatus.OLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "fingerprint": self.fingerprint,
            "pubDate": self.pub_date.isoformat() if self.pub_date else None,
            "status": self.status.value,
            "isFeedInfo": True,
        }

    @classmethod
    def from_dict(cls, feed_id: str, data: Optional[Dict[str, Any]]) -> "FeedRecord":
        data = upgrade_record(dict(data or {}))
        pub_date = None
        raw_date = data.get("pubDate")
        if isinstance(raw_date, str) and raw_date:
            try:
                pub_date = datetime.fromisoformat(raw_date)
            except ValueError:
                pub_date = None
            # parsed feed dates are UTC-aware; older records may be naive
            if pub_date is not None and pub_date.tzinfo is None:
                pub_date = pub_date.replace(tzinfo=timezone.utc)
        try:
            status = FeedStatus(data.get("status") or FeedStatus.OLD.value)
        except ValueError:
            status = FeedStatus.OLD
        fingerprint = data.get("fingerprint")
        return cls(
            id=feed_id,
            title=data.get("title") or "",
            fingerprint=fingerprint if isinstance(fingerprint, str) else None,
            pub_date=pub_date,
            status=status,
        )


def upgrade_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a record written by an older version to the current layout."""
    if "name" in data:
        data.setdefault("title", data["name"])
        del data["name"]
    for key in _LEGACY_FIELDS:
        data.pop(key, None)
    return data


@dataclass
class FeedOutcome:
    """Result of processing one feed inside a batch."""
    snapshot: "FeedSnapshot"
    items: List[FeedItem] = field(default_factory=list)
    updated: bool = False
    error: Optional[Exception] = None

    @property
    def status(self) -> FeedStatus:
        return self.snapshot.status
