import asyncio
import inspect
import logging
import time

logger = logging.getLogger("Scheduler")


class Timer:
    """Handle for one scheduled callback. Cancelling after it fired is a no-op."""

    def __init__(self, callback, args, when):
        self.callback = callback
        self.args = args
        self.when = when
        self.cancelled = False
        self.fired = False
        self._handle = None

    def cancel(self):
        self.cancelled = True
        if self._handle:
            self._handle.cancel()

    @property
    def active(self):
        return not self.cancelled and not self.fired


class Scheduler:
    """
    Cancellable timers on the running event loop.
    Callbacks may be plain functions or coroutine functions; coroutines are
    run as tasks and any exception they raise is logged, not propagated.
    """

    def __init__(self):
        self._tasks = set()

    def time(self):
        return time.monotonic()

    def call_later(self, delay, callback, *args):
        loop = asyncio.get_running_loop()
        timer = Timer(callback, args, self.time() + delay)
        timer._handle = loop.call_later(max(0.0, delay), self._fire, timer)
        return timer

    def _fire(self, timer):
        if timer.cancelled:
            return
        timer.fired = True
        try:
            result = timer.callback(*timer.args)
        except Exception as e:
            logger.error(f"Timer callback {getattr(timer.callback, '__name__', timer.callback)} failed: {e}")
            return
        if inspect.isawaitable(result):
            self.spawn(result)

    def spawn(self, coro):
        """Runs a coroutine in the background, keeping a reference until it finishes."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(f"Background task failed: {exc!r}")

    async def drain(self):
        """Waits for background tasks started by timers (used on shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
