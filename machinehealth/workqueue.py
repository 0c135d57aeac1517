"""
Per-policy wake-up triggers and error backoff for the reconcile daemons.

Each MachineHealthCheck daemon waits on its own ``asyncio.Event``; routed
Machine and Node events set it. Several triggers arriving while a pass runs
collapse into one follow-up pass, which is the deduplication the hosting loop
relies on.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from .models import NamespacedName

LOG = logging.getLogger(__name__)


class TriggerRegistry:
    """Wake-up events keyed by policy"""

    def __init__(self):
        self._events: Dict[NamespacedName, asyncio.Event] = {}

    def register(self, key: NamespacedName) -> asyncio.Event:
        event = self._events.get(key)
        if event is None:
            event = asyncio.Event()
            self._events[key] = event
        return event

    def unregister(self, key: NamespacedName):
        self._events.pop(key, None)

    def is_registered(self, key: NamespacedName) -> bool:
        return key in self._events

    def trigger(self, key: NamespacedName) -> bool:
        """Wake the daemon for ``key``. Returns False if none is running."""
        event = self._events.get(key)
        if event is None:
            LOG.debug(f"No reconcile loop registered for {key}, dropping trigger")
            return False
        event.set()
        return True

    def trigger_all(self, keys: Iterable[NamespacedName]) -> int:
        return sum(1 for key in set(keys) if self.trigger(key))

    async def wait(self, key: NamespacedName, timeout: Optional[float] = None, stopped=None) -> bool:
        """
        Wait for a trigger, the timeout or the stop flag, whichever comes first.

        ``stopped`` is kopf's daemon stop flag; anything with an awaitable
        ``wait()`` works. Returns True only when woken by a trigger. The event
        is cleared either way so the next wait starts fresh.
        """
        event = self.register(key)
        if event.is_set():
            event.clear()
            return True

        triggered = asyncio.ensure_future(event.wait())
        waiters = {triggered}
        if stopped is not None:
            waiters.add(asyncio.ensure_future(stopped.wait()))
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            return triggered in done
        finally:
            for waiter in waiters:
                waiter.cancel()
            event.clear()


class Backoff:
    """Exponential backoff per policy, reset after a clean pass"""

    def __init__(self, base: float = 5.0, maximum: float = 300.0):
        self.base = base
        self.maximum = maximum
        self._failures: Dict[NamespacedName, int] = {}

    def next_delay(self, key: NamespacedName) -> float:
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        return min(self.base * (2 ** failures), self.maximum)

    def failures(self, key: NamespacedName) -> int:
        return self._failures.get(key, 0)

    def reset(self, key: NamespacedName):
        self._failures.pop(key, None)
