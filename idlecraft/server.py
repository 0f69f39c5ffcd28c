"""Shared state of the managed Minecraft server and control of its process."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import time
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Optional

log = logging.getLogger("idlecraft")
monitor_log = logging.getLogger("idlecraft.monitor")

#: Seconds to wait after the server process quit, letting stray threads finish.
SERVER_QUIT_COOLDOWN = 2.5

#: Exit codes that count as a clean shutdown (SIGINT and SIGTERM exits).
ALLOWED_EXIT_CODES = (130, 143)

_UNIX = os.name == "posix"


class State(Enum):
    """Lifecycle state of the server."""

    STOPPED = 0
    STARTING = 1
    STARTED = 2
    STOPPING = 3


@dataclass
class ServerSettings:
    """Settings that control how the server process is managed.

    Timeouts and times are in seconds; a timeout of 0 disables it.
    """

    command: str
    directory: Optional[str] = None
    start_timeout: int = 300
    stop_timeout: int = 150
    min_online_time: int = 60
    sleep_after: int = 60
    freeze_process: bool = False
    wake_on_crash: bool = False


@dataclass
class ServerStatus:
    """Status as reported by the running server."""

    version_name: str
    protocol: int
    description: str = ""
    players_online: int = 0
    players_max: int = 0
    favicon: Optional[str] = None


def _send_signal(pid, sig):
    try:
        os.kill(pid, sig)
    except OSError:
        return False
    return True


class Server:
    """Shared server state: lifecycle, activity tracking, bans and whitelist.

    ``banned_ips`` objects must provide ``is_banned(ip)`` and ``get(ip)``;
    whitelist objects must provide ``is_whitelisted(username)``.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._state = State.STOPPED
        self._state_changed = asyncio.Event()
        self.pid = None
        self._status = None
        self._last_active = None
        self._keep_online_until = None
        self._kill_at = None
        self._banned_ips = None
        self._whitelist = None
        self._task = None
        self.probed_join_game = None
        self.forge_payload = []

    @property
    def state(self):
        """Current state."""
        return self._state

    @property
    def status(self):
        """Last known server status; kept once known."""
        return self._status

    async def wait_for_state_change(self):
        """Wait until the state changes, then return the current state."""
        await self._state_changed.wait()
        return self._state

    def _update_state(self, new, settings):
        return self._update_state_from(None, new, settings)

    def _update_state_from(self, expected, new, settings):
        """Switch to ``new``, only if currently ``expected`` when given.

        Returns ``False`` if the current state did not match or nothing changed.
        """
        if expected is not None and self._state is not expected:
            return False
        old = self._state
        self._state = new
        if old is new:
            return False

        log.debug("Change server state from %s to %s", old.name, new.name)

        changed = self._state_changed
        self._state_changed = asyncio.Event()
        changed.set()

        now = self._clock()
        if new is State.STARTING and settings.start_timeout > 0:
            self._kill_at = now + settings.start_timeout
        elif new is State.STOPPING and settings.stop_timeout > 0:
            self._kill_at = now + settings.stop_timeout
        else:
            self._kill_at = None

        if new is State.STARTED:
            monitor_log.info("Server is now online")
        elif new is State.STOPPED:
            monitor_log.info("Server is now sleeping")

        if old is State.STARTING and new is State.STARTED:
            self._update_last_active()
            self._keep_online_for(settings.min_online_time)

        return True

    def update_status(self, settings, status):
        """Record a status poll result; ``None`` means the server did not respond."""
        if status is not None and self._state in (State.STOPPED, State.STARTING):
            self._update_state(State.STARTED, settings)
        elif status is None and self._state is State.STARTED:
            self._update_state(State.STOPPED, settings)

        if status is not None:
            if status.players_online > 0:
                self._update_last_active()
            self._status = status

    async def start(self, settings, username=None):
        """Start the server if it is stopped; returns whether it was started."""
        if not self._update_state_from(State.STOPPED, State.STARTING, settings):
            return False

        if username is not None:
            log.info("Starting server for '%s'...", username)
        else:
            log.info("Starting server...")

        if _UNIX and settings.freeze_process and self._unfreeze_signal(settings):
            return True

        self._task = asyncio.ensure_future(self._run(settings))
        return True

    async def _run(self, settings):
        try:
            await invoke_server_cmd(settings, self)
        except asyncio.CancelledError:
            raise
        except Exception as err:
            log.error("Server process failed: %s", err)

    async def stop(self, settings):
        """Stop the running server with the available methods; returns success."""
        if _UNIX and settings.freeze_process and self._freeze_signal(settings):
            return True
        if self._stop_signal(settings):
            return True
        log.warning("Failed to stop server, no more suitable stopping method to use")
        return False

    def force_kill(self):
        """Kill the server process; requires its PID to be known."""
        if self.pid is None:
            return False
        return _send_signal(self.pid, getattr(signal, "SIGKILL", signal.SIGTERM))

    def should_sleep(self, settings):
        """Whether the online server has been idle long enough to put it to sleep."""
        if self._state is not State.STARTED:
            return False

        if self._status is not None and self._status.players_online > 0:
            log.debug("Not sleeping because players are online")
            return False

        now = self._clock()
        if self._keep_online_until is not None and self._keep_online_until >= now:
            log.debug("Not sleeping because of keep online")
            return False

        if self._last_active is not None:
            return now - self._last_active >= settings.sleep_after
        return False

    def should_kill(self):
        """Whether the start or stop timeout has passed."""
        return self._kill_at is not None and self._kill_at <= self._clock()

    def _update_last_active(self):
        self._last_active = self._clock()

    def _keep_online_for(self, duration):
        if duration is not None and duration > 0:
            self._keep_online_until = self._clock() + duration
        else:
            self._keep_online_until = None

    def is_banned_ip(self, ip):
        """Whether ``ip`` is banned according to the latest known ban list."""
        return self._banned_ips is not None and bool(self._banned_ips.is_banned(ip))

    def ban_entry(self, ip):
        """Ban entry for ``ip``, or ``None``."""
        if self._banned_ips is None:
            return None
        return self._banned_ips.get(ip)

    def is_whitelisted(self, username):
        """Whether ``username`` may wake the server; ``True`` without a whitelist."""
        if self._whitelist is None:
            return True
        return bool(self._whitelist.is_whitelisted(username))

    def set_banned_ips(self, ips):
        """Replace the list of banned IPs."""
        self._banned_ips = ips

    def set_whitelist(self, whitelist):
        """Replace the whitelist; ``None`` disables it."""
        self._whitelist = whitelist

    def _stop_signal(self, settings):
        if self.pid is None:
            log.debug("Could not send stop signal to server process, PID unknown")
            return False
        if not _send_signal(self.pid, signal.SIGTERM):
            log.error("Failed to send stop signal to server process")
            return False
        self._update_state_from(State.STARTING, State.STOPPING, settings)
        self._update_state_from(State.STARTED, State.STOPPING, settings)
        return True

    def _freeze_signal(self, settings):
        if self.pid is None:
            log.debug("Could not send freeze signal to server process, PID unknown")
            return False
        if not _send_signal(self.pid, signal.SIGSTOP):
            log.error("Failed to send freeze signal to server process.")
        self._update_state_from(State.STARTING, State.STOPPED, settings)
        self._update_state_from(State.STARTED, State.STOPPED, settings)
        return True

    def _unfreeze_signal(self, settings):
        if self.pid is None:
            log.debug("Could not send unfreeze signal to server process, PID unknown")
            return False
        if not _send_signal(self.pid, signal.SIGCONT):
            log.error("Failed to send unfreeze signal to server process.")
        self._update_state_from(State.STOPPING, State.STARTING, settings)
        self._update_state_from(State.STOPPED, State.STARTING, settings)
        return True


async def invoke_server_cmd(settings, server):
    """Run the server command, track its PID and wait for it to quit.

    Raises ``ValueError`` for an empty or unparsable command and ``OSError`` if
    the process cannot be started. Restarts the server after a crash when
    ``wake_on_crash`` is set.
    """
    try:
        args = shlex.split(settings.command)
    except ValueError as err:
        raise ValueError(f"invalid server command: {err}") from err
    if not args:
        raise ValueError("invalid server command")

    try:
        process = await asyncio.create_subprocess_exec(*args, cwd=settings.directory)
    except OSError:
        log.error("Failed to start server process through command")
        raise

    server.pid = process.pid
    try:
        try:
            code = await process.wait()
        except asyncio.CancelledError:
            with suppress(ProcessLookupError):
                process.kill()
            raise
        except OSError as err:
            log.error("Failed to wait for server process to quit: %s", err)
            log.error("Assuming server quit, cleaning up...")
            crashed = False
        else:
            if code == 0:
                log.debug("Server process stopped successfully (%d)", code)
                crashed = False
            elif code in ALLOWED_EXIT_CODES:
                log.debug("Server process stopped successfully by SIGTERM (%d)", code)
                crashed = False
            else:
                log.warning("Server process stopped with error code (%d)", code)
                crashed = server.state is State.STARTED
    finally:
        server.pid = None

    await asyncio.sleep(SERVER_QUIT_COOLDOWN)

    server._update_state(State.STOPPED, settings)

    if crashed and settings.wake_on_crash:
        log.warning("Server crashed, restarting...")
        await server.start(settings)