import asyncio
import shlex
import sys

import pytest

from idlecraft import server as server_module
from idlecraft.server import (
    Server,
    ServerSettings,
    ServerStatus,
    State,
    invoke_server_cmd,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeBans:
    def __init__(self, entries):
        self.entries = entries

    def is_banned(self, ip):
        return ip in self.entries

    def get(self, ip):
        return self.entries.get(ip)


class FakeWhitelist:
    def __init__(self, names):
        self.names = set(names)

    def is_whitelisted(self, username):
        return username in self.names


def _python_command(code):
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def _sleeping_settings(**kwargs):
    return ServerSettings(command=_python_command("import time; time.sleep(30)"), **kwargs)


def _status(online=0):
    return ServerStatus(version_name="1.21.5", protocol=770, players_online=online)


async def _wait_for(server, state, timeout=10):
    async def loop():
        while server.state is not state:
            await server.wait_for_state_change()

    await asyncio.wait_for(loop(), timeout)


async def _wait_for_pid(server, timeout=10):
    async def loop():
        while server.pid is None:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(loop(), timeout)


@pytest.fixture(autouse=True)
def no_cooldown(monkeypatch):
    monkeypatch.setattr(server_module, "SERVER_QUIT_COOLDOWN", 0)


def test_state_values_match_wire_ids():
    assert [s.value for s in State] == [0, 1, 2, 3]
    assert State(2) is State.STARTED


def test_new_server_is_stopped_and_idle():
    server = Server()
    assert server.state is State.STOPPED
    assert server.status is None
    assert server.should_kill() is False
    assert server.should_sleep(ServerSettings(command="x")) is False


def test_update_status_marks_started_and_keeps_status():
    server = Server()
    settings = ServerSettings(command="x")
    status = _status()
    server.update_status(settings, status)
    assert server.state is State.STARTED
    assert server.status is status


def test_update_status_none_marks_stopped_but_keeps_last_status():
    server = Server()
    settings = ServerSettings(command="x")
    status = _status()
    server.update_status(settings, status)
    server.update_status(settings, None)
    assert server.state is State.STOPPED
    assert server.status is status


def test_should_sleep_after_player_activity():
    clock = FakeClock()
    server = Server(clock=clock)
    settings = ServerSettings(command="x", sleep_after=5)
    server.update_status(settings, _status(online=2))
    assert server.should_sleep(settings) is False
    server.update_status(settings, _status(online=0))
    clock.now += 4
    assert server.should_sleep(settings) is False
    clock.now += 2
    assert server.should_sleep(settings) is True


def test_ban_and_whitelist_defaults():
    server = Server()
    assert server.is_banned_ip("127.0.0.1") is False
    assert server.ban_entry("127.0.0.1") is None
    assert server.is_whitelisted("steve") is True


def test_ban_list_is_consulted():
    server = Server()
    entry = {"reason": "griefing"}
    server.set_banned_ips(FakeBans({"10.0.0.1": entry}))
    assert server.is_banned_ip("10.0.0.1") is True
    assert server.is_banned_ip("10.0.0.2") is False
    assert server.ban_entry("10.0.0.1") is entry


def test_whitelist_is_consulted_and_can_be_cleared():
    server = Server()
    server.set_whitelist(FakeWhitelist(["alex"]))
    assert server.is_whitelisted("alex") is True
    assert server.is_whitelisted("steve") is False
    server.set_whitelist(None)
    assert server.is_whitelisted("steve") is True


def test_force_kill_without_pid_fails():
    assert Server().force_kill() is False


@pytest.mark.asyncio
async def test_stop_without_pid_fails():
    server = Server()
    assert await server.stop(ServerSettings(command="x")) is False
    assert server.state is State.STOPPED


@pytest.mark.asyncio
async def test_invoke_rejects_empty_command():
    with pytest.raises(ValueError):
        await invoke_server_cmd(ServerSettings(command="   "), Server())


@pytest.mark.asyncio
async def test_start_runs_process_until_it_exits():
    server = Server()
    settings = ServerSettings(command=_python_command("import sys; sys.exit(0)"))
    assert await server.start(settings, "steve") is True
    assert server.state is State.STARTING
    assert await server.start(settings) is False
    await _wait_for(server, State.STOPPED)
    assert server.pid is None


@pytest.mark.asyncio
async def test_allowed_exit_code_is_clean_stop():
    server = Server()
    settings = ServerSettings(
        command=_python_command("import sys; sys.exit(143)"), wake_on_crash=True
    )
    await server.start(settings)
    await _wait_for(server, State.STOPPED)
    await asyncio.sleep(0.05)
    assert server.state is State.STOPPED


@pytest.mark.asyncio
async def test_start_timeout_triggers_kill():
    clock = FakeClock()
    server = Server(clock=clock)
    settings = _sleeping_settings(start_timeout=30)
    await server.start(settings)
    await _wait_for_pid(server)
    assert server.should_kill() is False
    clock.now += 31
    assert server.should_kill() is True
    assert server.force_kill() is True
    await _wait_for(server, State.STOPPED)
    assert server.should_kill() is False


@pytest.mark.asyncio
async def test_min_online_time_keeps_server_awake():
    clock = FakeClock()
    server = Server(clock=clock)
    settings = _sleeping_settings(min_online_time=10, sleep_after=5)
    await server.start(settings)
    await _wait_for_pid(server)
    server.update_status(settings, _status())
    assert server.state is State.STARTED
    clock.now += 6
    assert server.should_sleep(settings) is False
    clock.now += 5
    assert server.should_sleep(settings) is True
    server.force_kill()
    await _wait_for(server, State.STOPPED)


@pytest.mark.asyncio
async def test_stop_terminates_running_server():
    server = Server()
    settings = _sleeping_settings()
    await server.start(settings)
    await _wait_for_pid(server)
    server.update_status(settings, _status())
    assert await server.stop(settings) is True
    assert server.state is State.STOPPING
    await _wait_for(server, State.STOPPED)
    assert server.pid is None


@pytest.mark.asyncio
async def test_wait_for_state_change_reports_new_state():
    server = Server()
    settings = ServerSettings(command="x")
    waiter = asyncio.ensure_future(server.wait_for_state_change())
    await asyncio.sleep(0)
    server.update_status(settings, _status())
    assert await asyncio.wait_for(waiter, 5) is State.STARTED