from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

NO_FEED_UPDATED = "No feed has been updated"
ONE_FEED_UPDATED = "One feed has been updated"
FEEDS_UPDATED = "{count} feeds have been updated"


def summary_message(updated_count: int) -> str:
    if updated_count > 1:
        return FEEDS_UPDATED.format(count=updated_count)
    if updated_count == 1:
        return ONE_FEED_UPDATED
    return NO_FEED_UPDATED


class NotificationReporter:
    """Sends one summary popup per check batch, when popups are enabled."""

    def __init__(self, ui: Any) -> None:
        self._ui = ui

    def report(self, updated_count: int, *, enabled: bool = True) -> None:
        message = summary_message(updated_count)
        logger.info(message)
        if enabled:
            self._ui.notify(message)
