import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from visitorpass.services.expiry import utcnow

logger = logging.getLogger(__name__)

TickCallback = Callable[[datetime], None]


class Subscription:
    """Handle returned by Ticker.subscribe; release it when the view goes away."""

    def __init__(self, ticker: "Ticker", key: int):
        self._ticker = ticker
        self._key = key
        self.active = True

    def cancel(self):
        if self.active:
            self._ticker._remove(self._key)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()


class Ticker:
    """
    Single periodic timer shared by any number of subscribers.

    Each tick reads the clock once and hands the same instant to every
    subscriber. Subscribers derive everything from that instant; the ticker
    keeps no countdown state of its own.

    With `offload=True` the loop dispatches each tick on a worker thread,
    for subscribers that block (database sweeps). Subscribers that touch
    loop-bound objects such as asyncio queues need the default.
    """

    def __init__(self, name: str, interval: float, clock: Callable[[], datetime] = utcnow, offload: bool = False):
        self.name = name
        self.interval = interval
        self.clock = clock
        self.offload = offload
        self._subscribers: Dict[int, TickCallback] = {}
        self._next_key = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: TickCallback) -> Subscription:
        key = self._next_key
        self._next_key += 1
        self._subscribers[key] = callback
        return Subscription(self, key)

    def _remove(self, key: int):
        self._subscribers.pop(key, None)

    def dispatch(self, now: Optional[datetime] = None) -> datetime:
        """Deliver one tick to every current subscriber"""
        now = now or self.clock()
        for key, callback in list(self._subscribers.items()):
            try:
                callback(now)
            except Exception:
                # isolate subscriber failures
                logger.exception(f"[{self.name}] subscriber {key} failed")
        return now

    async def run(self):
        logger.info(f"⏱️ Ticker '{self.name}' started ({self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                if self.offload:
                    await asyncio.to_thread(self.dispatch)
                else:
                    self.dispatch()
        except asyncio.CancelledError:
            logger.info(f"Ticker '{self.name}' stopped")
            raise

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._subscribers.clear()
