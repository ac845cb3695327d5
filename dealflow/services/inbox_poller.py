"""Caller-owned periodic inbox sync.

One InboxPoller per configured mailbox. The poller owns a background thread
and a shutdown event; nothing about it is process-global.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from dealflow.config import Settings, get_settings

logger = logging.getLogger(__name__)


class InboxPoller:
    """Run a sync callable every ``interval_minutes`` until stopped."""

    def __init__(
        self,
        mailbox: str,
        sync: Callable[[], Any],
        interval_minutes: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        if interval_minutes is None:
            interval_minutes = (settings or get_settings()).inbox_poll_interval_minutes
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
        self.mailbox = mailbox
        self.interval_seconds = interval_minutes * 60
        self._sync = sync
        self._shutdown_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.runs = 0
        self.last_result: Any = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Any:
        """Run one sync. Failures are logged and yield None."""
        try:
            result = self._sync()
        except Exception:
            logger.exception("Inbox sync failed for %s", self.mailbox)
            return None
        finally:
            self.runs += 1

        self.last_result = result
        if getattr(result, "quota_exceeded", False):
            logger.warning("Inbox sync for %s hit the AI quota; will retry next cycle", self.mailbox)
        return result

    def _loop(self) -> None:
        logger.info(
            "Inbox polling started: mailbox=%s interval=%.0fs", self.mailbox, self.interval_seconds
        )
        while not self._shutdown_event.is_set():
            self.run_once()
            self._shutdown_event.wait(timeout=self.interval_seconds)
        logger.info("Inbox polling stopped: mailbox=%s", self.mailbox)

    def start(self) -> bool:
        """Start polling. Returns False if this poller is already running."""
        with self._lock:
            if self.is_running:
                return False
            self._shutdown_event.clear()
            self._thread = threading.Thread(
                target=self._loop, name=f"inbox-poller-{self.mailbox}", daemon=True
            )
            self._thread.start()
            return True

    def stop(self, timeout: float | None = 10.0) -> bool:
        """Signal shutdown and wait for the current sync to finish.

        Returns False when the sync outlives ``timeout``. The thread is kept
        until it exits, so start() refuses to launch a second loop meanwhile.
        """
        with self._lock:
            self._shutdown_event.set()
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(
                "Inbox poller %s still syncing after %.1fs; it will exit when the sync ends",
                self.mailbox,
                timeout or 0.0,
            )
            return False
        with self._lock:
            if self._thread is thread:
                self._thread = None
        return True
