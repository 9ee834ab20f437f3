# zera_oracle/systems/broadcaster.py
import itertools
import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from flask import Flask

logger = logging.getLogger(__name__)

# Queued after close() so a blocked reader wakes up and exits.
_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    """A committed mutation, as pushed to live subscribers."""

    type: str
    kind: str
    key: str
    data: Optional[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "kind": self.kind, "key": self.key, "data": self.data}


def format_sse(event: ChangeEvent) -> str:
    payload = json.dumps(event.to_dict(), separators=(",", ":"), sort_keys=True)
    return f"event: {event.type}\ndata: {payload}\n\n"


def format_heartbeat() -> str:
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    return f": heartbeat {ts}\n\n"


class Subscription:
    """One live listener: a bounded queue plus bookkeeping for overflow and idleness."""

    def __init__(self, handle: int, maxsize: int):
        self.handle = handle
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self.consecutive_drops = 0
        self.total_drops = 0
        self.closed = False
        self.last_seen = time.monotonic()

    def offer(self, event: ChangeEvent) -> bool:
        """
        Enqueues without blocking. When full, the oldest queued event is
        discarded to make room. Returns False if something was dropped.
        """
        with self._lock:
            if self.closed:
                return True
            try:
                self._queue.put_nowait(event)
                self.consecutive_drops = 0
                return True
            except queue.Full:
                pass
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                pass
            self.consecutive_drops += 1
            self.total_drops += 1
            return False

    def close(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
            # Make room for the sentinel so the reader always sees it.
            while True:
                try:
                    self._queue.put_nowait(_CLOSED)
                    break
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        pass

    def pending(self) -> int:
        return self._queue.qsize()

    def events(self, heartbeat_secs: float) -> Iterator[Optional[ChangeEvent]]:
        """
        Yields events in publication order, or None when nothing arrived
        within `heartbeat_secs`. Ends once the subscription is closed.
        """
        while True:
            self.last_seen = time.monotonic()
            try:
                item = self._queue.get(timeout=heartbeat_secs)
            except queue.Empty:
                if self.closed:
                    return
                yield None
                continue
            if item is _CLOSED:
                return
            self.last_seen = time.monotonic()
            yield item


class Broadcaster:
    """
    Fan-out of committed changes to live subscribers.

    publish() never blocks the writer. A subscriber that can't keep up loses
    its oldest events first, and is disconnected after too many drops in a row.
    """

    def __init__(self):
        self.queue_size = 256
        self.max_drops = 1024
        self.heartbeat_secs = 15.0
        self.idle_timeout_secs = 120.0
        self.reap_interval_secs = 30.0

        self._subscribers: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._handles = itertools.count(1)

        self._stop_event = threading.Event()
        self._reaper_thread: Optional[threading.Thread] = None
        self._initialized = False

    def init_app(self, app: Flask):
        self.queue_size = int(app.config.get("SSE_QUEUE_SIZE", 256))
        self.max_drops = int(app.config.get("SSE_MAX_DROPS", 1024))
        self.heartbeat_secs = float(app.config.get("SSE_HEARTBEAT_SECS", 15))
        self.idle_timeout_secs = float(app.config.get("SSE_IDLE_TIMEOUT_SECS", 120))
        self.reap_interval_secs = float(app.config.get("SSE_REAP_INTERVAL_SECS", 30))
        self.close_all()
        self._initialized = True
        logger.info(f"📡 Broadcaster configured (queue={self.queue_size}, max_drops={self.max_drops}).")

    def subscribe(self) -> Subscription:
        sub = Subscription(next(self._handles), self.queue_size)
        with self._lock:
            self._subscribers[sub.handle] = sub
        logger.debug(f"📡 Subscriber {sub.handle} connected.")
        return sub

    def unsubscribe(self, handle: int):
        with self._lock:
            sub = self._subscribers.pop(handle, None)
        if sub is not None:
            sub.close()
            logger.debug(f"📡 Subscriber {handle} disconnected.")

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent):
        with self._lock:
            subscribers = list(self._subscribers.values())

        overflowing: List[int] = []
        for sub in subscribers:
            if not sub.offer(event) and sub.consecutive_drops > self.max_drops:
                overflowing.append(sub.handle)

        for handle in overflowing:
            logger.warning(f"📡 Subscriber {handle} fell too far behind; disconnecting.")
            self.unsubscribe(handle)

    def reap(self, now: Optional[float] = None) -> int:
        """Closes subscriptions nobody has read from within the idle timeout."""
        now = time.monotonic() if now is None else now
        with self._lock:
            idle = [h for h, s in self._subscribers.items() if now - s.last_seen > self.idle_timeout_secs]
        for handle in idle:
            self.unsubscribe(handle)
        if idle:
            logger.info(f"📡 Reaped {len(idle)} idle subscriber(s).")
        return len(idle)

    def close_all(self):
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for sub in subscribers:
            sub.close()

    def start(self):
        """Starts the idle-subscriber reaper."""
        if not self._initialized:
            return
        if not self._reaper_thread or not self._reaper_thread.is_alive():
            logger.info("▶️ Starting Broadcaster reaper thread...")
            self._stop_event.clear()
            self._reaper_thread = threading.Thread(target=self._reaper_task, daemon=True, name="SSEReaper")
            self._reaper_thread.start()

    def stop(self):
        if self._reaper_thread and self._reaper_thread.is_alive():
            logger.info("🛑 Stopping Broadcaster reaper thread...")
            self._stop_event.set()
            self._reaper_thread.join(timeout=5)
        self.close_all()

    def _reaper_task(self):
        while not self._stop_event.wait(self.reap_interval_secs):
            try:
                self.reap()
            except Exception as e:
                logger.error(f"💥 Reaper pass failed: {e}", exc_info=True)


# Singleton instance
broadcaster = Broadcaster()


def get_broadcaster_status():
    if not broadcaster._initialized:
        return {"active": False, "healthy": False, "info": "Broadcaster not initialized"}
    return {"active": True, "healthy": True, "subscribers": broadcaster.subscriber_count()}
