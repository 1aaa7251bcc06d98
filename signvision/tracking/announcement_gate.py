"""
Announcement gate.

Fires at most one combined notification per cycle for objects whose
label just locked. Each object is announced once in its lifetime;
objects beyond the cap wait for the next cycle instead of being dropped.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from signvision.core.contracts import LockAnnouncement
from .lifecycle import ObjectTable


class AnnouncementGate:
    """Collects locked, not-yet-announced objects in table order."""

    def __init__(self, cap: int = 3):
        self.cap = cap

    def collect(self, table: ObjectTable, now: float) -> Optional[LockAnnouncement]:
        """
        Mark up to ``cap`` newly locked objects as announced.

        Args:
            table: Object table after this cycle's lifecycle updates
            now: Cycle timestamp (ms)

        Returns:
            The announcement, or None if nothing is pending
        """
        pending = [obj for obj in table if obj.label_locked and not obj.announced]
        if not pending:
            return None

        batch = pending[:self.cap]
        for obj in batch:
            obj.announced = True

        if len(pending) > len(batch):
            logger.debug(f"{len(pending) - len(batch)} locked track(s) deferred to next cycle")

        return LockAnnouncement(
            labels=tuple(obj.label for obj in batch),
            object_ids=tuple(obj.object_id for obj in batch),
            timestamp_ms=now,
        )
