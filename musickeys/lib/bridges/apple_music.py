# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Apple Music bridge — talks to Music.app through ``osascript``.

Scripts return newline-separated fields.  Artwork cannot travel over stdout,
so the full-track script writes it to a fresh staging file in the temp dir;
the bridge reads it back, deletes it, and recompresses it for the key
(Pillow, in a thread pool — CPU-bound).
"""

import asyncio
import base64
import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Optional

from PIL import Image

from .base import (NO_TRACK, BridgeError, FullTrackInfo, PlayerBridge,
                   ScriptError, TrackIdentity, TransportCommand)

log = logging.getLogger(__name__)

MAX_ARTWORK_SIZE = 100 * 1024  # bytes of JPEG per key icon
DEFAULT_ICON_SIZE = 196        # px, artwork is thumbnailed to fit
DEFAULT_SCRIPT_TIMEOUT = 5.0   # seconds

# Shared thread pool for artwork file I/O + recompression
_artwork_executor = ThreadPoolExecutor(max_workers=2)

RUNNING_SCRIPT = """
tell application "System Events"
    return (exists (processes where name is "Music"))
end tell
"""

IDENTITY_SCRIPT = """
tell application "Music"
    if player state is playing then
        set currentTrack to current track
        set trackId to id of currentTrack as string
        return trackId & "\\n" & player position & "\\n" & duration of currentTrack & "\\ntrue"
    else
        return "no_track\\n0\\n0\\nfalse"
    end if
end tell
"""

POSITION_SCRIPT = """
tell application "Music"
    if player state is playing then
        return (player position as string) & "\\n" & duration of current track & "\\ntrue"
    else
        return "0\\n0\\nfalse"
    end if
end tell
"""

FULL_TRACK_SCRIPT = """
tell application "Music"
    if player state is playing then
        set currentTrack to current track
        set trackName to name of currentTrack
        set trackArtist to artist of currentTrack
        set trackAlbum to album of currentTrack
        try
            set trackArtwork to data of artwork 1 of currentTrack
            set fileRef to open for access (POSIX file "{artwork_path}") with write permission
            set eof fileRef to 0
            write trackArtwork to fileRef
            close access fileRef
            return trackName & "\\n" & trackArtist & "\\n" & trackAlbum & "\\nArtwork saved"
        on error errMsg
            return trackName & "\\n" & trackArtist & "\\n" & trackAlbum & "\\nError: " & errMsg
        end try
    else
        return "No track"
    end if
end tell
"""

TRANSPORT_SCRIPTS = {
    TransportCommand.PLAY_PAUSE: 'tell application "Music" to playpause',
    TransportCommand.NEXT: 'tell application "Music" to next track',
    TransportCommand.PREVIOUS: 'tell application "Music" to previous track',
    TransportCommand.SEEK: 'tell application "Music" to set player position to {position}',
}


def parse_number(text: str) -> float:
    """AppleScript prints reals with the user's decimal separator."""
    try:
        return float(text.strip().replace(",", "."))
    except (ValueError, AttributeError):
        return 0.0


def _split_fields(output: str, count: int) -> list[str]:
    fields = output.split("\n")
    if len(fields) < count:
        raise BridgeError(f"Expected {count} fields from player, got {len(fields)}: {output!r}")
    return fields


def encode_artwork(image_bytes: bytes, icon_size: int = DEFAULT_ICON_SIZE) -> Optional[str]:
    """Convert raw artwork bytes to a JPEG data: URI sized for a key.

    Runs in a thread pool (CPU-bound).  Returns None if the bytes aren't a
    readable image.
    """
    try:
        image = Image.open(BytesIO(image_bytes))
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.thumbnail((icon_size, icon_size))

        buf = BytesIO()
        image.save(buf, "JPEG", quality=85)
        if buf.tell() > MAX_ARTWORK_SIZE:
            buf = BytesIO()
            image.save(buf, "JPEG", quality=60)

        return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
    except Exception as e:
        log.warning("Error processing artwork: %s", e)
        return None


def _load_staged_artwork(path: str, icon_size: int) -> Optional[str]:
    try:
        with open(path, "rb") as f:
            image_bytes = f.read()
    except OSError as e:
        log.error("Error reading artwork file: %s", e)
        return None

    if not image_bytes:
        log.warning("Artwork file was empty")
        return None
    return encode_artwork(image_bytes, icon_size)


def _remove_staging_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.error("Error deleting temporary artwork file: %s", e)


async def _kill(proc) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


class AppleMusicBridge(PlayerBridge):
    """PlayerBridge for Music.app on macOS."""

    def __init__(self, timeout: float = DEFAULT_SCRIPT_TIMEOUT,
                 icon_size: int = DEFAULT_ICON_SIZE,
                 artwork_dir: Optional[str] = None):
        self._timeout = timeout
        self._icon_size = icon_size
        self._artwork_dir = artwork_dir or tempfile.gettempdir()

    def _new_staging_path(self) -> str:
        """One staging file per fetch, so overlapping fetches never share it."""
        fd, path = tempfile.mkstemp(prefix="musickeys_artwork_", suffix=".bin",
                                    dir=self._artwork_dir)
        os.close(fd)
        return path

    async def run_script(self, script: str) -> str:
        """Run AppleScript *script*, return trimmed stdout.  Raises ScriptError."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "osascript", "-e", script.strip(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise BridgeError("osascript not found — Apple Music bridge needs macOS")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise ScriptError(f"osascript timed out after {self._timeout}s")
        except asyncio.CancelledError:
            # timer cancelled mid-script; don't leave osascript behind
            await _kill(proc)
            raise

        if proc.returncode != 0:
            raise ScriptError(f"osascript failed (rc={proc.returncode}): "
                              f"{stderr.decode(errors='replace').strip()}")
        return stdout.decode(errors="replace").strip()

    async def probe_running(self) -> bool:
        is_running = (await self.run_script(RUNNING_SCRIPT)) == "true"
        log.debug("Apple Music is running: %s", is_running)
        return is_running

    async def probe_identity(self) -> TrackIdentity:
        track_id, position, duration, is_playing = _split_fields(
            await self.run_script(IDENTITY_SCRIPT), 4)[:4]
        return TrackIdentity(
            track_id=track_id.strip() or NO_TRACK,
            position=parse_number(position),
            duration=parse_number(duration),
            is_playing=is_playing.strip() == "true",
        )

    async def probe_position(self) -> tuple[float, float, bool]:
        position, duration, is_playing = _split_fields(
            await self.run_script(POSITION_SCRIPT), 3)[:3]
        return parse_number(position), parse_number(duration), is_playing.strip() == "true"

    async def fetch_full_track(self) -> FullTrackInfo:
        path = self._new_staging_path()
        try:
            output = await self.run_script(FULL_TRACK_SCRIPT.format(artwork_path=path))
            if output == "No track":
                raise BridgeError("Playback stopped before track details could be read")
            title, artist, album, status = _split_fields(output, 4)[-4:]

            artwork = None
            if "Artwork saved" in status:
                loop = asyncio.get_running_loop()
                artwork = await loop.run_in_executor(
                    _artwork_executor, _load_staged_artwork, path, self._icon_size)
            else:
                log.debug("No artwork for %s: %s", title, status)
        finally:
            _remove_staging_file(path)

        return FullTrackInfo(title=title, artist=artist, album=album, artwork=artwork)

    async def send_transport(self, command: TransportCommand,
                             position: Optional[float] = None) -> None:
        if command is TransportCommand.SEEK:
            if position is None:
                raise BridgeError("Seek needs a position")
            script = TRANSPORT_SCRIPTS[command].format(position=max(0.0, float(position)))
        else:
            script = TRANSPORT_SCRIPTS[command]
        await self.run_script(script)
        log.info("Sent %s to Apple Music", command.value)
