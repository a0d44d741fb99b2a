"""Tests for render_loop.py"""

import threading
import time

from render_loop import RenderScheduler, debounce
from trail_graph import MalformedChainError

EMPTY = {"type": "FeatureCollection", "features": []}


class TestDebounce:
    def test_burst_collapses_to_one_call(self):
        calls = []
        done = threading.Event()

        def fn():
            calls.append(time.monotonic())
            done.set()

        trigger = debounce(fn, wait=0.05)
        for _ in range(5):
            trigger()
        assert done.wait(2)
        time.sleep(0.1)
        assert len(calls) == 1

    def test_separate_bursts_each_fire(self):
        calls = []
        trigger = debounce(lambda: calls.append(1), wait=0.02)
        trigger()
        time.sleep(0.2)
        trigger()
        time.sleep(0.2)
        assert len(calls) == 2


class TestRenderScheduler:
    def setup_method(self):
        self.published = []
        self.computed = 0

    def _compute(self):
        self.computed += 1
        return EMPTY, EMPTY

    def _publish(self, lines, labels):
        self.published.append((lines, labels))

    def test_first_tick_runs(self):
        scheduler = RenderScheduler(self._compute, self._publish)
        assert scheduler.tick() is True
        assert self.published == [(EMPTY, EMPTY)]

    def test_clean_tick_is_noop(self):
        scheduler = RenderScheduler(self._compute, self._publish)
        scheduler.tick()
        assert scheduler.tick() is False
        assert self.computed == 1

    def test_mark_dirty_triggers_recompute(self):
        scheduler = RenderScheduler(self._compute, self._publish)
        scheduler.tick()
        scheduler.mark_dirty()
        assert scheduler.tick() is True
        assert self.computed == 2

    def test_failed_pass_publishes_nothing(self):
        def compute():
            raise MalformedChainError("bad chain")

        scheduler = RenderScheduler(compute, self._publish)
        assert scheduler.tick() is False
        assert self.published == []
        assert scheduler.dirty is False

    def test_tick_during_running_pass_is_deferred(self):
        scheduler = RenderScheduler(self._compute, self._publish)
        scheduler.running.acquire()
        try:
            assert scheduler.tick() is False
            assert scheduler.dirty is True
        finally:
            scheduler.running.release()
        assert scheduler.tick() is True

    def test_on_render_is_debounced(self):
        done = threading.Event()

        def publish(lines, labels):
            self.published.append(lines)
            done.set()

        scheduler = RenderScheduler(self._compute, publish, wait=0.05)
        for _ in range(10):
            scheduler.on_render()
        assert done.wait(2)
        time.sleep(0.1)
        assert self.computed == 1
