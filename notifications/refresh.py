"""
Purpose: Registry of background ETA refresh tasks, one per active order.
What it does:

- start(order_id, tick): runs `tick` every `interval_seconds` on a daemon thread
  until it returns False (order finished), or until cancel(order_id)
- guarantees zero-or-one task per order
- cancel / is_active / active_order_ids / shutdown for lifecycle control

The scheduler is a plain object injected where it is needed (the publisher),
never a module-level singleton.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()
ETA_REFRESH_INTERVAL_SECONDS = float(os.getenv("ETA_REFRESH_INTERVAL_SECONDS", "60"))

logger = logging.getLogger(__name__)

# Returns True to keep refreshing, False once the order no longer needs it
RefreshTick = Callable[[], bool]


class _RefreshTask(threading.Thread):
    def __init__(self, order_id: str, tick: RefreshTick, interval_seconds: float,
                 on_exit: Callable[[_RefreshTask], None]):
        super().__init__(name=f"eta-refresh-{order_id}", daemon=True)
        self.order_id = order_id
        self.tick = tick
        self.interval_seconds = interval_seconds
        self.on_exit = on_exit
        self._stopped = threading.Event()

    def stop(self) -> None:
        self._stopped.set()

    def run(self) -> None:
        try:
            # wait() returns True as soon as stop() is called
            while not self._stopped.wait(self.interval_seconds):
                try:
                    keep_going = self.tick()
                except Exception:
                    logger.exception("ETA refresh tick failed for order %s", self.order_id)
                    continue
                if not keep_going:
                    logger.info("ETA refresh finished for order %s", self.order_id)
                    break
        finally:
            self.on_exit(self)


class RefreshScheduler:
    """
    Tracks the background refresh task of every order in flight.
    """
    def __init__(self, interval_seconds: Optional[float] = None):
        self.interval_seconds = interval_seconds if interval_seconds is not None else ETA_REFRESH_INTERVAL_SECONDS
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._lock = threading.Lock()
        self._tasks: Dict[str, _RefreshTask] = {}

    def start(self, order_id: str, tick: RefreshTick) -> bool:
        """
        Start refreshing `order_id`. Returns False if a task already runs for it.
        """
        with self._lock:
            if order_id in self._tasks:
                return False
            task = _RefreshTask(order_id, tick, self.interval_seconds, on_exit=self._forget)
            self._tasks[order_id] = task
        task.start()
        return True

    def cancel(self, order_id: str) -> bool:
        with self._lock:
            task = self._tasks.pop(order_id, None)
        if task is None:
            return False
        task.stop()
        return True

    def is_active(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._tasks

    def active_order_ids(self) -> List[str]:
        with self._lock:
            return list(self._tasks)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop every task and wait for the threads to exit.
        """
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.stop()
        for task in tasks:
            task.join(timeout)

    def _forget(self, task: _RefreshTask) -> None:
        with self._lock:
            # a cancelled-then-restarted order may already own a newer task
            if self._tasks.get(task.order_id) is task:
                del self._tasks[task.order_id]
