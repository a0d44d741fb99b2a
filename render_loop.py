"""
render_loop.py — Recompute hill lines only after the viewport settles.

A viewport-settle event marks the scheduler dirty; render ticks go through a
debounce so a burst of them triggers at most one recomputation.
"""

import logging
import threading
from typing import Callable

from config import DEBOUNCE_SECONDS
from trail_graph import TrailNetworkError

logger = logging.getLogger(__name__)


def debounce(fn: Callable[[], None], wait: float = DEBOUNCE_SECONDS) -> Callable[[], None]:
    """Return a trigger that calls ``fn`` once, ``wait`` seconds after the last trigger."""
    timer: threading.Timer | None = None
    lock = threading.Lock()

    def trigger() -> None:
        nonlocal timer
        with lock:
            if timer is not None:
                timer.cancel()
            timer = threading.Timer(wait, fn)
            timer.daemon = True
            timer.start()

    return trigger


class RenderScheduler:
    """Dirty-flag gate between viewport events and the hill-line pass.

    ``compute`` returns the new (lines, labels) collections; ``publish``
    receives them. A failed pass publishes nothing, so the last good output
    stays on screen.
    """

    def __init__(self, compute: Callable[[], tuple[dict, dict]],
                 publish: Callable[[dict, dict], None],
                 wait: float = DEBOUNCE_SECONDS):
        self.compute = compute
        self.publish = publish
        self.dirty = True
        self.running = threading.Lock()
        self.on_render = debounce(self.tick, wait)

    def mark_dirty(self) -> None:
        self.dirty = True

    def tick(self) -> bool:
        """Run one pass if dirty. Returns True when new output was published."""
        if not self.dirty:
            return False
        if not self.running.acquire(blocking=False):
            logger.debug("Previous pass still running, deferring")
            return False
        try:
            self.dirty = False
            try:
                lines, labels = self.compute()
            except TrailNetworkError as e:
                logger.error(f"Hill line pass aborted: {e}")
                return False
            self.publish(lines, labels)
            return True
        finally:
            self.running.release()
