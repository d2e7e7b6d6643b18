import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
import config
import ui
from errors import InvalidState, SpawnError, ProcessError

logger = logging.getLogger("ServerControl")


class ServerStatus(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    RESTARTING = "restarting"


@dataclass
class ServerSnapshot:
    status: ServerStatus
    address: str
    usage: dict = None


class ServerController:
    """
    Lifecycle state machine for the game server.

    With a supervisor attached the real process is driven; without one every
    transition is simulated on timers. Each operation checks and sets the
    status before its first await, so two commands can never both pass the
    precondition. Progress goes to the last reporter that issued a command
    (anything with an async `send(embed=...)`, normally a text channel).
    """

    def __init__(self, scheduler, supervisor=None, address=None, auto_restart=None, timings=None):
        self.scheduler = scheduler
        self.supervisor = supervisor
        self.address = address if address is not None else config.SERVER_IP
        self.auto_restart = config.AUTO_RESTART if auto_restart is None else auto_restart
        self.timings = {
            "start_fallback": config.START_FALLBACK_SECONDS,
            "stop_kill": config.STOP_KILL_SECONDS,
            "restart_safety": config.RESTART_SAFETY_SECONDS,
            "restart_delay": config.RESTART_DELAY_SECONDS,
            "crash_backoff": config.CRASH_BACKOFF_SECONDS,
            "sim_start": config.SIM_START_SECONDS,
            "sim_stop": config.SIM_STOP_SECONDS,
        }
        if timings:
            self.timings.update(timings)

        self.status = ServerStatus.STOPPED
        self.reporter = None
        self._timers = {}

        if supervisor:
            supervisor.on_ready = self._on_ready
            supervisor.on_exit = self._on_exit

    @property
    def simulated(self):
        return self.supervisor is None

    # ==========================================
    # COMMANDS
    # ==========================================

    async def start(self, reporter=None):
        self._require(ServerStatus.STOPPED, "⚠️ Already running or starting — server is not in stopped state.")
        self._set(ServerStatus.STARTING)
        self._use_reporter(reporter)

        await self._report("starting")

        if self.simulated:
            self._arm("sim", self.timings["sim_start"], self._finish_simulated_start)
            return
        await self._launch()

    async def stop(self, reporter=None):
        if self.status is ServerStatus.STOPPED:
            raise InvalidState("⚠️ Already stopped — server is already stopped.", status=self.status)
        self._require(ServerStatus.STARTED, f"⚠️ Server is {self.status.value}, wait for it to finish first.")
        self._set(ServerStatus.STOPPING)
        self._use_reporter(reporter)
        self._cancel("fallback", "respawn", "sim")

        await self._report("stopping")

        if self.simulated:
            self._arm("sim", self.timings["sim_stop"], self._finish_simulated_stop)
            return

        if not self.supervisor.is_running:
            self._set(ServerStatus.STOPPED)
            await self._report("stopped")
            return

        await self._request_graceful_stop()
        self._arm("kill", self.timings["stop_kill"], self._force_kill)

    async def restart(self, reporter=None):
        if self.status is ServerStatus.STOPPED:
            raise InvalidState("⚠️ Server is stopped — use start command to start the server.", status=self.status)
        self._require(ServerStatus.STARTED, f"⚠️ Server is {self.status.value}, wait for it to finish first.")
        self._set(ServerStatus.RESTARTING)
        self._use_reporter(reporter)
        self._cancel("fallback", "respawn", "sim")

        await self._report("restarting")

        if self.simulated:
            self._arm("sim", self.timings["sim_stop"], self._simulated_restart_boot)
            return

        if not self.supervisor.is_running:
            await self._begin_reboot()
            return

        await self._request_graceful_stop()
        self._arm("kill", self.timings["restart_safety"], self._force_kill)

    def snapshot(self):
        usage = self.supervisor.usage() if self.supervisor else None
        return ServerSnapshot(self.status, self.address, usage)

    async def shutdown(self):
        """Cancels timers and stops a running process before the bot exits."""
        self._cancel(*list(self._timers))
        if not self.supervisor or not self.supervisor.is_running:
            return
        self._set(ServerStatus.STOPPING)
        await self._request_graceful_stop()
        try:
            await asyncio.wait_for(self.supervisor.wait_closed(), timeout=self.timings["stop_kill"])
        except asyncio.TimeoutError:
            logger.warning("Server did not stop in time during shutdown, terminating")
            self.supervisor.terminate()
            await self.supervisor.wait_closed()

    # ==========================================
    # SUPERVISOR EVENTS
    # ==========================================

    async def _on_ready(self):
        if self.status not in (ServerStatus.STARTING, ServerStatus.RESTARTING):
            return
        self._set(ServerStatus.STARTED)
        self._cancel("fallback", "kill")
        await self._report("started", address=self.address)

    async def _on_exit(self, code, sig, manual):
        self._cancel("kill", "fallback")

        if manual and self.status is ServerStatus.RESTARTING:
            await self._begin_reboot()
            return

        if manual:
            self._set(ServerStatus.STOPPED)
            await self._report("stopped")
            return

        # Unexpected exit (crash)
        self._cancel("respawn")
        self._set(ServerStatus.STOPPED)
        reason = f"signal {sig}" if sig else f"code {code}"
        await self._report("crashed", code=reason)

        if self.auto_restart:
            delay = self.timings["crash_backoff"]
            logger.info(f"AUTO_RESTART enabled — restarting in {delay:g}s...")
            self._set(ServerStatus.STARTING)
            await self._report("auto_restart", delay=f"{delay:g}")
            self._arm("respawn", delay, self._respawn)

    # ==========================================
    # INTERNALS
    # ==========================================

    def _require(self, expected, message):
        if self.status is not expected:
            raise InvalidState(message, status=self.status)

    def _set(self, status):
        if status is not self.status:
            logger.info(f"Server status: {self.status.value} -> {status.value}")
        self.status = status

    def _use_reporter(self, reporter):
        if reporter is not None:
            self.reporter = reporter

    def _arm(self, name, delay, callback):
        self._cancel(name)
        self._timers[name] = self.scheduler.call_later(delay, callback)

    def _cancel(self, *names):
        for name in names:
            timer = self._timers.pop(name, None)
            if timer:
                timer.cancel()

    async def _report(self, kind, **fields):
        if not self.reporter:
            return
        try:
            await self.reporter.send(embed=ui.server_notice(kind, **fields))
        except Exception as e:
            logger.error(f"Failed to deliver '{kind}' notice: {e}")

    async def _launch(self):
        """Spawns the process for the current STARTING attempt and arms the fallback."""
        self.supervisor.manual_stop = False
        try:
            await self.supervisor.spawn()
        except SpawnError as e:
            self._cancel("fallback")
            self._set(ServerStatus.STOPPED)
            await self._report("spawn_failed", error=str(e.message))
            return
        if self.status is ServerStatus.STARTING:
            self._arm("fallback", self.timings["start_fallback"], self._start_fallback)

    async def _request_graceful_stop(self):
        self.supervisor.manual_stop = True
        try:
            await self.supervisor.write_line(config.STOP_COMMAND)
        except ProcessError as e:
            logger.error(f"Error sending stop to server process: {e}")
            self.supervisor.terminate()

    async def _begin_reboot(self):
        self._cancel("kill")
        self._set(ServerStatus.STARTING)
        await self._report("booting")
        self._arm("respawn", self.timings["restart_delay"], self._respawn)

    async def _respawn(self):
        self._timers.pop("respawn", None)
        if self.status is not ServerStatus.STARTING:
            return
        await self._launch()

    async def _start_fallback(self):
        self._timers.pop("fallback", None)
        if self.status is not ServerStatus.STARTING:
            return
        self._set(ServerStatus.STARTED)
        await self._report("started_fallback", address=self.address)

    def _force_kill(self):
        self._timers.pop("kill", None)
        if self.supervisor and self.supervisor.is_running:
            logger.warning("Forcing server process kill after timeout")
            self.supervisor.terminate()

    # --- Simulation ---

    async def _finish_simulated_start(self):
        self._timers.pop("sim", None)
        if self.status is not ServerStatus.STARTING:
            return
        self._set(ServerStatus.STARTED)
        await self._report("started", address=self.address)

    async def _finish_simulated_stop(self):
        self._timers.pop("sim", None)
        if self.status is not ServerStatus.STOPPING:
            return
        self._set(ServerStatus.STOPPED)
        await self._report("stopped")

    async def _simulated_restart_boot(self):
        self._timers.pop("sim", None)
        if self.status is not ServerStatus.RESTARTING:
            return
        self._set(ServerStatus.STARTING)
        await self._report("booting")
        self._arm("sim", self.timings["sim_start"], self._finish_simulated_restart)

    async def _finish_simulated_restart(self):
        self._timers.pop("sim", None)
        if self.status is not ServerStatus.STARTING:
            return
        self._set(ServerStatus.STARTED)
        await self._report("restarted")
