import asyncio
import inspect
import itertools
from unittest.mock import AsyncMock, MagicMock
from scheduler import Timer


class FakeScheduler:
    """Scheduler stand-in with a manual clock. `advance()` fires due timers in order."""

    def __init__(self, start=1000.0):
        self.now = start
        self.timers = []
        self._seq = itertools.count()
        self.tasks = set()

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        timer = Timer(callback, args, self.now + delay)
        timer.seq = next(self._seq)
        self.timers.append(timer)
        return timer

    def spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def pending(self):
        return sorted((t for t in self.timers if t.active), key=lambda t: (t.when, t.seq))

    async def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.pending() if t.when <= target]
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.fired = True
            result = timer.callback(*timer.args)
            if inspect.isawaitable(result):
                await result
        self.now = target
        # Let tasks spawned by callbacks run
        await asyncio.sleep(0)


class FakeSupervisor:
    """Process supervisor double; tests drive ready/exit events by hand."""

    def __init__(self, spawn_error=None):
        self.running = False
        self.manual_stop = False
        self.spawn_error = spawn_error
        self.spawn_calls = 0
        self.lines = []
        self.signals = []
        self.on_ready = None
        self.on_exit = None
        self.on_output = None

    @property
    def is_running(self):
        return self.running

    async def spawn(self):
        self.spawn_calls += 1
        if self.spawn_error:
            raise self.spawn_error
        self.running = True
        return MagicMock(pid=4242)

    async def write_line(self, text):
        self.lines.append(text)

    def terminate(self, sig=15):
        self.signals.append(sig)

    def usage(self):
        return None

    async def wait_closed(self):
        return None

    async def exit(self, code=0, sig=None):
        """Simulates the process ending, like the real supervisor's exit watcher."""
        manual = self.manual_stop
        self.running = False
        self.manual_stop = False
        await self.on_exit(code, sig, manual)


def make_reporter():
    reporter = MagicMock()
    reporter.send = AsyncMock()
    return reporter


def sent_titles(reporter):
    return [c.kwargs["embed"].title for c in reporter.send.call_args_list]


def make_panel(message_id=555):
    panel = MagicMock()
    panel.id = message_id
    panel.edit = AsyncMock()
    return panel
