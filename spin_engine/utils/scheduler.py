"""
Timer abstraction for spin pacing.

The state machine never sleeps; it schedules callbacks in milliseconds and
keeps the returned handles so pending work can be cancelled when a session
is torn down. ManualScheduler runs on a virtual clock (tests, simulator),
AsyncioScheduler on a live event loop.
"""
import asyncio
import heapq
import itertools
import logging

logger = logging.getLogger(__name__)


class TimerHandle:
    def __init__(self, callback, args, when=None, loop_handle=None):
        self.callback = callback
        self.args = args
        self.when = when
        self._loop_handle = loop_handle
        self._cancelled = False

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        self._cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()

    def _run(self):
        if not self._cancelled:
            self.callback(*self.args)

    def __repr__(self):
        state = 'cancelled' if self._cancelled else 'pending'
        return f"<TimerHandle {getattr(self.callback, '__name__', self.callback)} at {self.when} {state}>"


class ManualScheduler:
    """
    Virtual-clock scheduler.

    Callbacks run only from `advance` / `run_until_idle`, ordered by due time
    and then by scheduling order. Callbacks may schedule further callbacks;
    those run in the same `advance` call when they fall due inside it.
    """

    def __init__(self):
        self.now = 0
        self._queue = []
        self._counter = itertools.count()

    def call_later(self, delay_ms, callback, *args):
        when = self.now + max(0, delay_ms)
        handle = TimerHandle(callback, args, when=when)
        heapq.heappush(self._queue, (when, next(self._counter), handle))
        return handle

    @property
    def pending(self):
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def _pop_due(self, deadline):
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            return when, handle
        return None

    def advance(self, ms):
        """Moves the clock forward by `ms` and runs everything that falls due."""
        deadline = self.now + ms
        ran = 0
        while True:
            due = self._pop_due(deadline)
            if due is None:
                break
            self.now, handle = due
            handle._run()
            ran += 1
        self.now = deadline
        return ran

    def run_until_idle(self, max_ms=None):
        """
        Runs callbacks until nothing is pending.

        Args:
            max_ms: Optional cap on virtual time; autoplay reschedules forever
                so callers driving it should pass one.

        Returns:
            int: Number of callbacks run.
        """
        deadline = None if max_ms is None else self.now + max_ms
        ran = 0
        while True:
            while self._queue and self._queue[0][2].cancelled:
                heapq.heappop(self._queue)
            if not self._queue:
                break
            when = self._queue[0][0]
            if deadline is not None and when > deadline:
                self.now = deadline
                break
            _, _, handle = heapq.heappop(self._queue)
            self.now = when
            handle._run()
            ran += 1
        return ran

    def run_next(self):
        """Runs the next due callback, jumping the clock to it. Returns False when idle."""
        due = self._pop_due(float('inf'))
        if due is None:
            return False
        self.now, handle = due
        handle._run()
        return True


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop."""

    def __init__(self, loop=None):
        self.loop = loop or asyncio.get_running_loop()

    def call_later(self, delay_ms, callback, *args):
        handle = TimerHandle(callback, args, when=self.loop.time() + delay_ms / 1000.0)
        handle._loop_handle = self.loop.call_later(max(0, delay_ms) / 1000.0, handle._run)
        return handle
