from __future__ import annotations

from typing import Optional

REDIRECT_CLOSE = "</redirect>"
LOCATION_OPEN = "<newLocation>"
LOCATION_CLOSE = "</newLocation>"


def resolve_redirect(body: Optional[str]) -> Optional[str]:
    """
    Return the URL a feed body redirects to, or None.

    A body redirects when it carries a </redirect> marker and a
    <newLocation>...</newLocation> pair; the enclosed text is the new URL.
    """
    if not body or REDIRECT_CLOSE not in body or LOCATION_CLOSE not in body:
        return None
    start = body.find(LOCATION_OPEN)
    if start < 0:
        return None
    start += len(LOCATION_OPEN)
    end = body.find(LOCATION_CLOSE, start)
    if end < 0:
        return None
    target = body[start:end].strip()
    return target or None
