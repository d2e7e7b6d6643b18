import asyncio
import codecs
import logging
import re
import signal
import psutil
import config
from errors import SpawnError, NotRunningError, ProcessError

logger = logging.getLogger("Supervisor")
server_log = logging.getLogger("Server")

READ_LIMIT = 64 * 1024


class ProcessSupervisor:
    """
    Owns the game server process (at most one at a time).

    Events go out through three hooks set by the owner:
      on_output(text)                  - every stdout/stderr line, in order
      on_ready()                       - stdout matched the ready pattern
      on_exit(code, signal, manual)    - process ended; manual means a stop was requested
    """

    def __init__(self, command=None, args=None, ready_pattern=None, cwd=None):
        self.command = command or config.JAVA_CMD
        self.args = list(args if args is not None else config.JAVA_ARGS)
        self.ready_re = re.compile(ready_pattern or config.READY_PATTERN, re.IGNORECASE)
        self.cwd = cwd if cwd is not None else config.SERVER_DIR

        self.process = None
        self.ps_process = None
        self.manual_stop = False
        self._exited = None
        self._watch_task = None

        self.on_output = None
        self.on_ready = None
        self.on_exit = None

    @property
    def is_running(self):
        return self.process is not None

    @property
    def pid(self):
        return self.process.pid if self.process else None

    async def spawn(self):
        """Launches the process. Returns the existing one if already running."""
        if self.process:
            return self.process

        try:
            process = await asyncio.create_subprocess_exec(
                self.command, *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                limit=READ_LIMIT,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to spawn server process: {e}")
            raise SpawnError(f"❌ Failed to start server: {e}") from e

        self.process = process
        self.ps_process = self._track_usage(process.pid)
        self._exited = asyncio.get_running_loop().create_future()
        logger.info(f"Spawned server process with PID {process.pid}")
        self._watch_task = asyncio.create_task(self._watch(process, self._exited))
        return process

    async def write_line(self, text):
        if not self.process or not self.process.stdin:
            raise NotRunningError()
        try:
            self.process.stdin.write(f"{text}\n".encode("utf-8"))
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ProcessError(f"❌ Could not write to server console: {e}") from e

    def terminate(self, sig=signal.SIGTERM):
        if not self.process:
            return
        try:
            self.process.send_signal(sig)
            logger.info(f"Sent signal {sig} to server process {self.process.pid}")
        except ProcessLookupError:
            pass

    async def wait_closed(self):
        """Resolves once the current process has exited (immediately if none)."""
        if self._exited is None or self._exited.done():
            return
        await asyncio.shield(self._exited)

    def usage(self):
        """CPU percent and resident memory (MB) of the running process, or None."""
        proc = self.ps_process
        if not self.process or proc is None:
            return None
        try:
            with proc.oneshot():
                return {
                    "cpu_percent": proc.cpu_percent(interval=None),
                    "memory_mb": round(proc.memory_info().rss / (1024 * 1024), 1),
                }
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

    # --- Internals ---

    def _track_usage(self, pid):
        """psutil handle for the new process. The first cpu_percent call only sets the baseline."""
        try:
            proc = psutil.Process(pid)
            proc.cpu_percent(interval=None)
            return proc
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.warning(f"Usage tracking unavailable for PID {pid}: {e}")
            return None

    async def _read_stream(self, stream, is_err):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                raw = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF, possibly after an unterminated last line
                raw = e.partial
            except asyncio.LimitOverrunError as e:
                # Line longer than the buffer limit, forward it in pieces
                raw = await stream.read(e.consumed)
            if not raw:
                break
            text = decoder.decode(raw)
            if not text:
                continue
            await self._handle_output(text, is_err)

        tail = decoder.decode(b"", final=True)
        if tail:
            await self._handle_output(tail, is_err)

    async def _handle_output(self, text, is_err):
        if is_err:
            server_log.warning(text.rstrip())
            self._emit_output(f"[ERROR] {text}")
            return

        server_log.info(text.rstrip())
        self._emit_output(text)
        if self.ready_re.search(text) and self.on_ready:
            await self.on_ready()

    def _emit_output(self, text):
        if not self.on_output:
            return
        try:
            self.on_output(text)
        except Exception as e:
            logger.error(f"Output hook failed: {e}")

    async def _watch(self, process, exited):
        readers = [
            asyncio.create_task(self._read_stream(process.stdout, False)),
            asyncio.create_task(self._read_stream(process.stderr, True)),
        ]
        code = await process.wait()
        # Let readers flush whatever the process wrote before exiting
        results = await asyncio.gather(*readers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Output reader failed: {result!r}")

        sig = None
        if code is not None and code < 0:
            sig = -code
            code = None
        manual = self.manual_stop
        logger.info(f"Server process exited (code={code}, signal={sig}, manual={manual})")

        if self.process is process:
            self.process = None
            self.ps_process = None
        self.manual_stop = False
        if not exited.done():
            exited.set_result((code, sig))

        if self.on_exit:
            try:
                await self.on_exit(code, sig, manual)
            except Exception as e:
                logger.error(f"Exit hook failed: {e}")
