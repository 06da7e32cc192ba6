"""
In-process realtime change feed.

Services publish rows after their transaction commits; subscribers receive
them filtered by table and column values, in publish order. Delivery errors
are logged and never reach the publisher.
"""

import asyncio
import itertools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RowCallback = Callable[[Dict[str, Any]], None]


def pitch_session_channel(session_id: str) -> str:
    return f"pitch-session-{session_id}"


class Subscription:
    def __init__(self, hub: "RealtimeHub", sub_id: int, channel: str, table: str,
                 filters: Dict[str, Any], callback: RowCallback):
        self.hub = hub
        self.id = sub_id
        self.channel = channel
        self.table = table
        self.filters = filters
        self.callback = callback
        self.active = True

    def matches(self, table: str, row: Dict[str, Any]) -> bool:
        if table != self.table:
            return False
        return all(row.get(k) == v for k, v in self.filters.items())

    def unsubscribe(self) -> None:
        if self.active:
            self.hub._remove(self)
            self.active = False


class RealtimeHub:
    """Fan-out of inserted rows to subscribers."""

    def __init__(self):
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def on_insert(self, channel: str, table: str, callback: RowCallback, **filters) -> Subscription:
        with self._lock:
            sub = Subscription(self, next(self._ids), channel, table, filters, callback)
            self._subs[sub.id] = sub
        logger.debug("Subscribed %s to %s inserts %s", channel, table, filters)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            self._subs.pop(sub.id, None)
        logger.debug("Unsubscribed %s from %s", sub.channel, sub.table)

    def subscriber_count(self, channel: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for s in self._subs.values() if channel is None or s.channel == channel)

    def publish_insert(self, table: str, row: Dict[str, Any]) -> int:
        with self._lock:
            targets: List[Subscription] = [s for s in self._subs.values() if s.matches(table, row)]
        delivered = 0
        for sub in targets:
            try:
                sub.callback(dict(row))
                delivered += 1
            except Exception as exc:
                logger.error("Realtime delivery to %s failed: %s", sub.channel, exc, exc_info=True)
        return delivered


def queue_forwarder(queue: "asyncio.Queue", loop: asyncio.AbstractEventLoop) -> RowCallback:
    """Callback that hands rows to an event loop's queue from any thread."""

    def _forward(row: Dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, row)

    return _forward


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    return hub
