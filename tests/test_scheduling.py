from datetime import datetime, timedelta, timezone

from core.models import UpdateKind
from core.sniffer import Sniffer, SnifferQueue
from utils.scheduling import SnifferExpiryScheduler


class IdleSniffer(Sniffer):
    def filter_kinds(self):
        return [UpdateKind.MESSAGE]


def test_expired_sniffers_are_retired():
    queue = SnifferQueue()
    scheduler = SnifferExpiryScheduler(queue)
    short, long = IdleSniffer(), IdleSniffer()
    queue.add(1, short)
    queue.add(1, long)
    scheduler.schedule_expiry(1, short, 10)
    scheduler.schedule_expiry(1, long, 600)

    assert scheduler.run_once() == 0
    assert queue.pending(1) == (short, long)

    later = datetime.now(timezone.utc) + timedelta(seconds=60)
    assert scheduler.run_once(now=later) == 1
    assert queue.pending(1) == (long,)
    assert len(scheduler) == 1

    much_later = later + timedelta(hours=1)
    assert scheduler.run_once(now=much_later) == 1
    assert 1 not in queue
    assert len(scheduler) == 0


def test_consumed_sniffers_are_forgotten():
    queue = SnifferQueue()
    scheduler = SnifferExpiryScheduler(queue)
    sniffer = IdleSniffer()
    queue.add(1, sniffer)
    scheduler.schedule_expiry(1, sniffer, 600)

    queue.retire(1, sniffer)
    assert scheduler.run_once() == 0
    assert len(scheduler) == 0
