"""
Pytest configuration and shared fixtures for musickeys tests.
"""
import asyncio

import pytest

from musickeys.coordinator import DeviceKeyCoordinator
from musickeys.lib.bridges.base import (BridgeError, FullTrackInfo, PlayerBridge,
                                        TrackIdentity)
from musickeys.lib.config import PluginSettings
from musickeys.lib.player_client import PlaybackQueryClient
from musickeys.lib.plugin_base import DeviceHost
from musickeys.lib.scheduler import IntervalScheduler
from musickeys.lib.track_cache import TrackSnapshotCache

PLUGIN_UUID = "com.test.music"
ARTWORK = "data:image/jpeg;base64,/9j/AAAA"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeBridge(PlayerBridge):
    """Scriptable player.  Put a method name in ``fail`` to make it raise."""

    def __init__(self):
        self.running = True
        self.identity = TrackIdentity("42", 10.0, 200.0, True)
        self.position = (12.0, 200.0, True)
        self.full = FullTrackInfo("Song", "Artist", "Album", ARTWORK)
        self.fail: set[str] = set()
        self.calls: list[str] = []
        self.commands: list[tuple] = []
        self.fetch_delay = 0.0

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise BridgeError(f"{name} failed")

    @property
    def full_fetches(self) -> int:
        return self.calls.count("fetch_full_track")

    async def probe_running(self) -> bool:
        self._check("probe_running")
        return self.running

    async def probe_identity(self) -> TrackIdentity:
        self._check("probe_identity")
        return self.identity

    async def probe_position(self):
        self._check("probe_position")
        return self.position

    async def fetch_full_track(self) -> FullTrackInfo:
        self._check("fetch_full_track")
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        return self.full

    async def send_transport(self, command, position=None) -> None:
        self._check("send_transport")
        self.commands.append((command, position))


class RecordingHost(DeviceHost):
    """Collects draw / state calls instead of sending them anywhere."""

    def __init__(self):
        self.draws: list[tuple] = []
        self.states: list[tuple] = []
        self.fail = False

    async def draw(self, serial_number, key, mode="draw"):
        if self.fail:
            raise ConnectionError("device rejected draw")
        self.draws.append((serial_number, key, mode))

    async def set_key_state(self, serial_number, key, state):
        if self.fail:
            raise ConnectionError("device rejected state")
        self.states.append((serial_number, key, state))

    def get_config(self):
        return {}


class ManualScheduler(IntervalScheduler):
    """Records timers instead of running them; tests fire them by hand."""

    def __init__(self):
        super().__init__()
        self.callbacks = {}
        self.intervals = {}

    def __len__(self):
        return len(self.callbacks)

    def is_active(self, name):
        return name in self.callbacks

    def active_names(self):
        return sorted(self.callbacks)

    def schedule(self, name, callback, interval_ms):
        if name in self.callbacks:
            return
        self.callbacks[name] = callback
        self.intervals[name] = interval_ms

    def cancel(self, name):
        self.callbacks.pop(name, None)
        self.intervals.pop(name, None)

    def cancel_all(self):
        for name in list(self.callbacks):
            self.cancel(name)

    async def fire(self, name):
        await self.callbacks[name]()


def make_key(uid: str, role: str, **data) -> dict:
    """Key payload as the host sends it."""
    return {
        "uid": uid,
        "cid": f"{PLUGIN_UUID}.{role}",
        "title": "",
        "style": {"bgColor": "#000000"},
        "data": data,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TrackSnapshotCache(clock=clock)


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def client(bridge, cache):
    return PlaybackQueryClient(bridge, cache)


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def settings():
    return PluginSettings()


@pytest.fixture
def coordinator(host, client, scheduler, settings):
    return DeviceKeyCoordinator(host, client, scheduler, settings, PLUGIN_UUID)
