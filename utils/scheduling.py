"""Sniffer expiry scheduling utilities.

Provides a SnifferExpiryScheduler class that retires queued sniffers which
were not satisfied within a configurable time period.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import trio

from core.sniffer import Sniffer, SnifferQueue

logger = logging.getLogger(__name__)


@dataclass
class ScheduledExpiry:
    """Represents a scheduled sniffer expiry.

    Attributes:
        user_id: User the sniffer is queued for
        sniffer: The sniffer to retire
        expire_at: When to retire it
    """
    user_id: int
    sniffer: Sniffer
    expire_at: datetime


class SnifferExpiryScheduler:
    """
    Very simple in-memory scheduler retiring sniffers nobody satisfied.
    Sniffers already gone from the queue are skipped silently.
    """

    def __init__(self, queue: SnifferQueue, interval: float = 30) -> None:
        self.queue = queue
        self.interval = interval
        self._tasks: Dict[Tuple[int, int], ScheduledExpiry] = {}

    def schedule_expiry(self, user_id: int, sniffer: Sniffer, expire_after_seconds: float) -> None:
        """Schedule a sniffer for retirement.

        Args:
            user_id: User the sniffer is queued for
            sniffer: The queued sniffer
            expire_after_seconds: How long the sniffer may stay queued
        """
        expire_at = datetime.now(timezone.utc) + timedelta(seconds=expire_after_seconds)
        logger.debug(
            "Scheduling expiry of sniffer %s for user_id=%s at %s",
            sniffer.__class__.__name__,
            user_id,
            expire_at.isoformat(),
        )
        self._tasks[(user_id, id(sniffer))] = ScheduledExpiry(
            user_id=user_id,
            sniffer=sniffer,
            expire_at=expire_at,
        )

    def __len__(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Main scheduler loop that retires expired sniffers.

        Runs continuously, checking every ``interval`` seconds.
        """
        while True:
            try:
                self.run_once()
            except Exception:  # pylint: disable=broad-exception-caught
                # Keep the loop alive; a failed pass is retried next interval
                logger.exception("Error in SnifferExpiryScheduler loop")
            await trio.sleep(self.interval)

    def run_once(self, now: Optional[datetime] = None) -> int:
        """Process one cycle of scheduled expiries.

        Returns:
            Number of sniffers retired
        """
        now = now or datetime.now(timezone.utc)
        retired = 0
        for key, sched in list(self._tasks.items()):
            if not any(s is sched.sniffer for s in self.queue.pending(sched.user_id)):
                # consumed by an update in the meantime
                self._tasks.pop(key, None)
                continue
            if sched.expire_at <= now:
                if self.queue.retire(sched.user_id, sched.sniffer):
                    retired += 1
                self._tasks.pop(key, None)
        return retired
