"""Per-user interceptors that can claim an update before normal routing.

A sniffer is queued for one user and declares which update kinds it wants.
The first queued sniffer interested in an incoming update gets it; routing
does not run for that update whatever the sniffer decides.
"""
import logging
from typing import Dict, Iterable, List, Tuple

import trio

from core.models import Update, UpdateKind

logger = logging.getLogger(__name__)


class Sniffer:
    """
    Interface for interceptors.
    """

    def filter_kinds(self) -> Iterable[UpdateKind]:
        """Update kinds this sniffer wants to intercept."""
        raise NotImplementedError

    async def validate(self, update: Update) -> bool:
        """Check the intercepted update.

        Args:
            update: The intercepted update

        Returns:
            True to retire the sniffer and call on_success, False to keep it
            queued and call on_failure
        """
        raise NotImplementedError

    async def on_success(self, update: Update) -> None:
        raise NotImplementedError

    async def on_failure(self, update: Update) -> None:
        raise NotImplementedError


class SnifferQueue:
    """FIFO of sniffers per user id.

    A user has an entry only while at least one sniffer is queued for them.
    intercept() holds a per-user lock, so updates of one user are sniffed one
    at a time while other users proceed independently.
    """

    def __init__(self) -> None:
        self._queues: Dict[int, List[Sniffer]] = {}
        self._locks: Dict[int, trio.Lock] = {}

    def add(self, user_id: int, sniffer: Sniffer) -> None:
        """Queue a sniffer for a user."""
        if sniffer is None:
            raise ValueError("Sniffer can't be None")
        self._queues.setdefault(user_id, []).append(sniffer)
        logger.debug("Queued sniffer %s for user_id=%s", sniffer.__class__.__name__, user_id)

    def pending(self, user_id: int) -> Tuple[Sniffer, ...]:
        return tuple(self._queues.get(user_id, ()))

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._queues

    def __len__(self) -> int:
        return len(self._queues)

    def _is_queued(self, user_id: int, sniffer: Sniffer) -> bool:
        return any(queued is sniffer for queued in self._queues.get(user_id, ()))

    def _remove(self, user_id: int, sniffer: Sniffer) -> bool:
        queue = self._queues.get(user_id)
        if not queue:
            return False
        for i, queued in enumerate(queue):
            if queued is sniffer:
                del queue[i]
                break
        else:
            return False
        if not queue:
            del self._queues[user_id]
        return True

    def retire(self, user_id: int, sniffer: Sniffer) -> bool:
        """Remove a sniffer without running it.

        A sniffer retired while intercept() awaits its validate() counts as
        gone: neither continuation runs and the scan moves on.

        Returns:
            True if the sniffer was queued for the user
        """
        removed = self._remove(user_id, sniffer)
        if removed:
            logger.info("Retired sniffer %s for user_id=%s", sniffer.__class__.__name__, user_id)
        return removed

    def clear(self, user_id: int) -> int:
        """Drop every sniffer queued for a user and return how many there were."""
        return len(self._queues.pop(user_id, []))

    async def intercept(self, user_id: int, update: Update) -> bool:
        """Offer an update to the user's sniffers.

        Args:
            user_id: Originating user of the update
            update: The incoming update

        Returns:
            True if a sniffer consumed the update, False if routing should go on
        """
        if user_id not in self._queues:
            return False

        lock = self._locks.setdefault(user_id, trio.Lock())
        try:
            async with lock:
                return await self._intercept_locked(user_id, update)
        finally:
            if not lock.locked() and lock.statistics().tasks_waiting == 0:
                self._locks.pop(user_id, None)

    async def _intercept_locked(self, user_id: int, update: Update) -> bool:
        for sniffer in list(self._queues.get(user_id, ())):
            if update.kind not in set(sniffer.filter_kinds()):
                continue

            validated = await sniffer.validate(update)
            if not self._is_queued(user_id, sniffer):
                # retired while validating
                continue

            if validated:
                self._remove(user_id, sniffer)
                logger.info(
                    "Sniffer %s validated %s for user_id=%s",
                    sniffer.__class__.__name__,
                    update.kind.value,
                    user_id,
                )
                await sniffer.on_success(update)
            else:
                logger.debug(
                    "Sniffer %s rejected %s for user_id=%s",
                    sniffer.__class__.__name__,
                    update.kind.value,
                    user_id,
                )
                await sniffer.on_failure(update)
            return True
        return False
