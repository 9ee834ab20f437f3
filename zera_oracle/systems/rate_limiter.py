# zera_oracle/systems/rate_limiter.py
import logging
import threading
import time
from typing import Callable, Dict, Optional

from flask import Flask

from zera_oracle.errors import RateLimited
from zera_oracle.systems.auth_system import Principal

logger = logging.getLogger(__name__)


class _Window:
    __slots__ = ("count", "started_at", "lock")

    def __init__(self, started_at: float):
        self.count = 0
        self.started_at = started_at
        self.lock = threading.Lock()


class RateLimiter:
    """
    Fixed-window write quota per admin principal.

    Each principal gets a counter and a window start. A write is accepted
    while the counter for the active window is below the limit; the counter
    resets once the window has fully elapsed. State is memory-only, so a
    restart resets every quota.
    """

    def __init__(self, max_per_window: int = 60, window_secs: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.max_per_window = max_per_window
        self.window_secs = window_secs
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._registry_lock = threading.Lock()

        self._stop_event = threading.Event()
        self._cleaner_thread: Optional[threading.Thread] = None
        self._initialized = False

    def init_app(self, app: Flask, clock: Optional[Callable[[], float]] = None):
        self.max_per_window = int(app.config.get("WRITE_RATE_LIMIT_PER_MINUTE", 60))
        self.window_secs = float(app.config.get("WRITE_RATE_LIMIT_WINDOW_SECS", 60))
        if clock is not None:
            self._clock = clock
        self.reset()
        self._initialized = True
        logger.info(f"🛡️ RateLimiter configured: {self.max_per_window} writes per {self.window_secs:.0f}s.")

    def _window_for(self, subject: str) -> _Window:
        with self._registry_lock:
            window = self._windows.get(subject)
            if window is None:
                window = _Window(self._clock())
                self._windows[subject] = window
            return window

    def authorize_write(self, principal: Principal):
        """Counts one write for the principal or raises RateLimited."""
        if principal.is_system:
            return
        window = self._window_for(principal.subject)
        with window.lock:
            now = self._clock()
            if now - window.started_at >= self.window_secs:
                window.count = 0
                window.started_at = now
            if window.count >= self.max_per_window:
                retry_after = window.started_at + self.window_secs - now
                logger.warning(f"🛡️ Write quota exhausted for '{principal.subject}'; retry in {retry_after:.1f}s.")
                raise RateLimited(retry_after)
            window.count += 1

    def remaining(self, principal: Principal) -> Optional[int]:
        if principal.is_system:
            return None
        window = self._window_for(principal.subject)
        with window.lock:
            if self._clock() - window.started_at >= self.window_secs:
                return self.max_per_window
            return max(0, self.max_per_window - window.count)

    def reset(self):
        with self._registry_lock:
            self._windows.clear()

    def purge_expired(self) -> int:
        """Drops windows that have fully elapsed. Returns how many were removed."""
        now = self._clock()
        with self._registry_lock:
            stale = [s for s, w in self._windows.items() if now - w.started_at >= self.window_secs]
            for subject in stale:
                del self._windows[subject]
        return len(stale)

    def start(self):
        """Starts the background cleaner thread."""
        if not self._initialized:
            return
        if not self._cleaner_thread or not self._cleaner_thread.is_alive():
            logger.info("▶️ Starting RateLimiter cleaner thread...")
            self._stop_event.clear()
            self._cleaner_thread = threading.Thread(
                target=self._cleaner_task, daemon=True, name="RateLimitCleaner"
            )
            self._cleaner_thread.start()

    def stop(self):
        """Stops the cleaner thread gracefully."""
        if self._cleaner_thread and self._cleaner_thread.is_alive():
            logger.info("🛑 Stopping RateLimiter cleaner thread...")
            self._stop_event.set()
            self._cleaner_thread.join(timeout=5)
            logger.info("✅ Cleaner stopped.")

    def _cleaner_task(self):
        while not self._stop_event.wait(self.window_secs):
            removed = self.purge_expired()
            if removed:
                logger.debug(f"🛡️ Purged {removed} expired rate-limit windows.")


# Singleton instance
rate_limiter = RateLimiter()


def get_rate_limiter_status():
    """Health check for the rate limiter."""
    if rate_limiter._initialized:
        return {"active": True, "healthy": True, "info": f"{rate_limiter.max_per_window} writes/minute per admin"}
    return {"active": False, "healthy": False, "info": "Rate limiter not initialized"}
