# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for media player bridges.

A bridge is the only thing that talks to the player.  Every method may raise;
PlaybackQueryClient turns failures into safe defaults.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

NO_TRACK = "no_track"


class BridgeError(Exception):
    """The player could not be queried or commanded."""


class ScriptError(BridgeError):
    """A player script exited with an error."""


class TransportCommand(Enum):
    PLAY_PAUSE = "playpause"
    NEXT = "next"
    PREVIOUS = "previous"
    SEEK = "seek"


@dataclass
class TrackIdentity:
    """Cheap identity probe result.  ``track_id`` is NO_TRACK when idle."""
    track_id: str = NO_TRACK
    position: float = 0.0
    duration: float = 0.0
    is_playing: bool = False


@dataclass
class FullTrackInfo:
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork: Optional[str] = None  # data: URI or None


class PlayerBridge(ABC):
    """Interface every player bridge must implement."""

    @abstractmethod
    async def probe_running(self) -> bool: ...

    @abstractmethod
    async def probe_identity(self) -> TrackIdentity: ...

    @abstractmethod
    async def probe_position(self) -> tuple[float, float, bool]:
        """Return (position, duration, is_playing)."""

    @abstractmethod
    async def fetch_full_track(self) -> FullTrackInfo: ...

    @abstractmethod
    async def send_transport(self, command: TransportCommand,
                             position: Optional[float] = None) -> None: ...

    async def close(self) -> None:
        pass  # no-op by default (nothing to release)
