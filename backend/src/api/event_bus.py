"""SSE Event Bus - bridges run events from pool threads to async SSE consumers."""

import asyncio
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class EventBus:
    """Thread-safe event bus for SSE streaming.

    Ticks run on the shared worker pool and publish synchronously; SSE
    consumers read events asynchronously via asyncio queues. Slow consumers
    drop events rather than block a tick.
    """

    def __init__(self, max_queue: int = 1000):
        self._subscribers: List[asyncio.Queue] = []
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.max_queue = max_queue

    def set_loop(self, loop: asyncio.AbstractEventLoop):
        """Set the asyncio event loop for thread-safe publishing."""
        self._loop = loop

    def subscribe(self) -> asyncio.Queue:
        """Create a new subscription queue for an SSE consumer."""
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                pass
        q = asyncio.Queue(maxsize=self.max_queue)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue):
        """Remove a subscription queue."""
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: Dict[str, Any]):
        """Publish an event to all subscribers. Safe to call from any thread.

        Args:
            event_type: Event type string (e.g. 'phase_change', 'poll')
            data: Event data dictionary
        """
        event = {
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

        with self._lock:
            subscribers = list(self._subscribers)
        loop = self._loop
        for q in subscribers:
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(self._safe_put, q, event)
            else:
                self._safe_put(q, event)

    @staticmethod
    def _safe_put(q: asyncio.Queue, event: dict):
        try:
            q.put_nowait(event)
        except asyncio.QueueFull:
            pass
