from __future__ import annotations

from typing import Iterable, List, Tuple

from .models import FeedItem, FeedOutcome
from .parser import FeedDocumentParser


def merge(outcomes: Iterable[FeedOutcome]) -> List[FeedItem]:
    """
    Concatenate the item lists of completed feeds, in the order given.

    Outcomes of feeds that failed carry no items and contribute nothing.
    """
    items: List[FeedItem] = []
    for outcome in outcomes:
        items.extend(outcome.items)
    return items


def unify(outcomes: Iterable[FeedOutcome], title: str, parser: FeedDocumentParser) -> Tuple[List[FeedItem], str]:
    """Merge outcomes into one virtual feed and render it under *title*."""
    items = merge(outcomes)
    return items, parser.items_to_unified_document(items, title)
