import logging
from collections import deque
import config
import helpers

logger = logging.getLogger("ConsoleRelay")


class ConsoleRelay:
    """
    Batches server output for the console channel.

    Text is flushed when the buffer grows past `flush_chars` or after
    `debounce` seconds without new output. Flushed text is cut into
    `chunk_chars` pieces and handed to `sender` one at a time by a single
    drainer task, so messages never interleave or reorder.
    """

    def __init__(self, sender, scheduler, is_enabled=None,
                 flush_chars=config.CONSOLE_FLUSH_CHARS,
                 debounce=config.CONSOLE_DEBOUNCE_SECONDS,
                 chunk_chars=config.CONSOLE_CHUNK_CHARS):
        self.sender = sender
        self.scheduler = scheduler
        self.is_enabled = is_enabled or (lambda: True)
        self.flush_chars = flush_chars
        self.debounce = debounce
        self.chunk_chars = chunk_chars

        self.buffer = []
        self.buffered_chars = 0
        self.outbox = deque()
        self._timer = None
        self._drainer = None

    def feed(self, text):
        if not text or not self.is_enabled():
            return
        self.buffer.append(text)
        self.buffered_chars += len(text)

        if self._timer:
            self._timer.cancel()
            self._timer = None

        if self.buffered_chars > self.flush_chars:
            self.flush()
        else:
            self._timer = self.scheduler.call_later(self.debounce, self.flush)

    def flush(self):
        if self._timer:
            self._timer.cancel()
            self._timer = None
        if not self.buffer:
            return

        output = "".join(self.buffer)
        self.buffer = []
        self.buffered_chars = 0

        if not self.is_enabled():
            return

        self.outbox.extend(helpers.chunk_text(output, self.chunk_chars))
        if self._drainer is None or self._drainer.done():
            self._drainer = self.scheduler.spawn(self._drain())

    async def _drain(self):
        while self.outbox:
            chunk = self.outbox.popleft()
            try:
                await self.sender(chunk)
            except Exception as e:
                logger.error(f"Failed to relay console output: {e}")

    async def wait_idle(self):
        """Flushes pending output and waits until everything queued was handed to the sender."""
        self.flush()
        while self._drainer is not None and not self._drainer.done():
            await self._drainer
