"""
Tests for the Apple Music bridge with osascript replaced by canned output.
"""
import asyncio
import base64
import os
import re
from io import BytesIO

import pytest
from PIL import Image

from musickeys.lib.bridges import apple_music
from musickeys.lib.bridges.apple_music import (AppleMusicBridge, encode_artwork,
                                               parse_number)
from musickeys.lib.bridges.base import NO_TRACK, BridgeError, TransportCommand
from musickeys.lib.scheduler import IntervalScheduler


class ScriptedBridge(AppleMusicBridge):
    """Returns queued outputs instead of running osascript.

    When ``artwork`` is given it is written to the staging file the script
    names, the way Music.app would.
    """

    def __init__(self, *outputs, artwork=None, **kwargs):
        super().__init__(**kwargs)
        self.outputs = list(outputs)
        self.artwork = artwork
        self.scripts = []
        self.staged = []

    async def run_script(self, script):
        self.scripts.append(script)
        match = re.search(r'POSIX file "([^"]+)"', script)
        if match:
            self.staged.append(match.group(1))
            if self.artwork is not None:
                with open(match.group(1), "wb") as f:
                    f.write(self.artwork)
        await asyncio.sleep(0)
        return self.outputs.pop(0) if self.outputs else ""


def _image_bytes(size=(500, 300), mode="RGBA", fmt="PNG"):
    buf = BytesIO()
    Image.new(mode, size, (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)).save(buf, fmt)
    return buf.getvalue()


def test_parse_number():
    assert parse_number("12,5") == 12.5
    assert parse_number(" 200.25 ") == 200.25
    assert parse_number("missing value") == 0.0


class TestEncodeArtwork:

    def test_produces_small_jpeg_data_uri(self):
        uri = encode_artwork(_image_bytes(), icon_size=196)
        assert uri.startswith("data:image/jpeg;base64,")

        image = Image.open(BytesIO(base64.b64decode(uri.split(",", 1)[1])))
        assert image.format == "JPEG"
        assert max(image.size) <= 196

    def test_garbage_returns_none(self):
        assert encode_artwork(b"not an image") is None


class TestProbes:

    @pytest.mark.asyncio
    async def test_probe_running(self):
        assert await ScriptedBridge("true").probe_running() is True
        assert await ScriptedBridge("false").probe_running() is False

    @pytest.mark.asyncio
    async def test_probe_identity_with_comma_decimals(self):
        identity = await ScriptedBridge("1234\n12,5\n200,0\ntrue").probe_identity()
        assert identity.track_id == "1234"
        assert identity.position == 12.5
        assert identity.duration == 200.0
        assert identity.is_playing is True

    @pytest.mark.asyncio
    async def test_probe_identity_idle(self):
        identity = await ScriptedBridge("no_track\n0\n0\nfalse").probe_identity()
        assert identity.track_id == NO_TRACK
        assert identity.is_playing is False

    @pytest.mark.asyncio
    async def test_probe_position(self):
        assert await ScriptedBridge("30.5\n180\ntrue").probe_position() == (30.5, 180.0, True)

    @pytest.mark.asyncio
    async def test_short_output_raises(self):
        with pytest.raises(BridgeError):
            await ScriptedBridge("0\n0").probe_position()


class TestFullTrack:

    @pytest.mark.asyncio
    async def test_reads_and_removes_staged_artwork(self, tmp_path):
        bridge = ScriptedBridge("Song\nArtist\nAlbum\nArtwork saved",
                                artwork=_image_bytes(), artwork_dir=str(tmp_path))

        info = await bridge.fetch_full_track()

        assert (info.title, info.artist, info.album) == ("Song", "Artist", "Album")
        assert info.artwork.startswith("data:image/jpeg;base64,")
        assert os.path.dirname(bridge.staged[0]) == str(tmp_path)
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_artwork_error_leaves_artwork_empty(self, tmp_path):
        bridge = ScriptedBridge("Song\nArtist\nAlbum\nError: no artwork",
                                artwork_dir=str(tmp_path))
        info = await bridge.fetch_full_track()
        assert info.title == "Song"
        assert info.artwork is None
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_empty_staged_file(self, tmp_path):
        bridge = ScriptedBridge("Song\nArtist\nAlbum\nArtwork saved",
                                artwork=b"", artwork_dir=str(tmp_path))
        info = await bridge.fetch_full_track()
        assert info.artwork is None
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stopped_between_probe_and_fetch(self, tmp_path):
        with pytest.raises(BridgeError):
            await ScriptedBridge("No track", artwork_dir=str(tmp_path)).fetch_full_track()
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_overlapping_fetches_use_separate_staging_files(self, tmp_path):
        bridge = ScriptedBridge("Song\nArtist\nAlbum\nArtwork saved",
                                "Song\nArtist\nAlbum\nArtwork saved",
                                artwork=_image_bytes(), artwork_dir=str(tmp_path))

        first, second = await asyncio.gather(bridge.fetch_full_track(),
                                             bridge.fetch_full_track())

        assert bridge.staged[0] != bridge.staged[1]
        assert first.artwork is not None
        assert second.artwork is not None
        assert list(tmp_path.iterdir()) == []


class TestTransport:

    @pytest.mark.asyncio
    async def test_commands_use_their_scripts(self):
        bridge = ScriptedBridge()
        await bridge.send_transport(TransportCommand.PLAY_PAUSE)
        await bridge.send_transport(TransportCommand.NEXT)
        await bridge.send_transport(TransportCommand.PREVIOUS)
        assert bridge.scripts == [
            'tell application "Music" to playpause',
            'tell application "Music" to next track',
            'tell application "Music" to previous track',
        ]

    @pytest.mark.asyncio
    async def test_seek_clamps_to_zero(self):
        bridge = ScriptedBridge()
        await bridge.send_transport(TransportCommand.SEEK, 42.5)
        await bridge.send_transport(TransportCommand.SEEK, -3)
        assert bridge.scripts == [
            'tell application "Music" to set player position to 42.5',
            'tell application "Music" to set player position to 0.0',
        ]

    @pytest.mark.asyncio
    async def test_seek_without_position(self):
        with pytest.raises(BridgeError):
            await ScriptedBridge().send_transport(TransportCommand.SEEK)


@pytest.mark.asyncio
async def test_missing_osascript_is_bridge_error(monkeypatch):
    async def no_osascript(*args, **kwargs):
        raise FileNotFoundError("osascript")

    monkeypatch.setattr(apple_music.asyncio, "create_subprocess_exec", no_osascript)
    with pytest.raises(BridgeError):
        await AppleMusicBridge().run_script("return 1")


class SlowProcess:
    """Stands in for an osascript child that never finishes on its own."""

    def __init__(self):
        self.returncode = None
        self.started = False
        self.killed = False
        self.reaped = False

    async def communicate(self):
        self.started = True
        await asyncio.sleep(10)

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        self.reaped = True
        return self.returncode


@pytest.fixture
def slow_process(monkeypatch):
    proc = SlowProcess()

    async def spawn(*args, **kwargs):
        return proc

    monkeypatch.setattr(apple_music.asyncio, "create_subprocess_exec", spawn)
    return proc


async def _until(condition):
    for _ in range(200):
        if condition():
            return
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_script_timeout_kills_process(slow_process):
    with pytest.raises(BridgeError, match="timed out"):
        await AppleMusicBridge(timeout=0.05).run_script("delay 10")
    assert slow_process.killed
    assert slow_process.reaped


@pytest.mark.asyncio
async def test_cancelled_timer_kills_running_script(slow_process):
    """Cancelling a key's timer mid-script kills and reaps osascript."""
    bridge = AppleMusicBridge(timeout=30)
    scheduler = IntervalScheduler()
    scheduler.schedule("k1", bridge.probe_running, 1)
    await _until(lambda: slow_process.started)
    assert slow_process.started

    scheduler.cancel_for_key("k1")
    await _until(lambda: slow_process.reaped)

    assert slow_process.killed
    assert slow_process.reaped


@pytest.mark.asyncio
async def test_cancelled_script_call_propagates_cancellation(slow_process):
    task = asyncio.ensure_future(AppleMusicBridge(timeout=30).run_script("delay 10"))
    await _until(lambda: slow_process.started)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert slow_process.killed
