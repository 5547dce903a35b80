# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PlaybackQueryClient — the only caller of the player bridge.

Every method converts bridge failures into a safe value; nothing here raises
to the coordinator:

  query_player_running()  — False on any failure
  query_light_position()  — zeroed PlaybackPosition on failure / not running
  query_full_track()      — "nothing playing" snapshot when idle, None only
                            when the expensive fetch itself failed
  send_command()          — False on failure; clears the track cache on success
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .bridges.base import NO_TRACK, PlayerBridge, TrackIdentity, TransportCommand
from .track_cache import TrackSnapshot, TrackSnapshotCache

log = logging.getLogger(__name__)


@dataclass
class PlaybackPosition:
    position: float = 0.0
    duration: float = 0.0
    is_playing: bool = False
    is_running: bool = False


class PlaybackQueryClient:

    def __init__(self, bridge: PlayerBridge, cache: TrackSnapshotCache):
        self.bridge = bridge
        self.cache = cache
        # one expensive fetch at a time; waiters re-check the cache afterwards
        self._fetch_lock = asyncio.Lock()

    async def query_player_running(self) -> bool:
        try:
            return bool(await self.bridge.probe_running())
        except Exception as e:
            log.error("Error checking whether the player is running: %s", e)
            return False

    async def query_light_position(self) -> PlaybackPosition:
        if not await self.query_player_running():
            return PlaybackPosition()
        try:
            position, duration, is_playing = await self.bridge.probe_position()
        except Exception as e:
            log.error("Error in obtaining a playback position: %s", e)
            return PlaybackPosition()

        self.cache.merge_position_only(position, is_playing)
        return PlaybackPosition(position, duration, is_playing, True)

    async def _query_identity(self) -> tuple[TrackIdentity, bool]:
        """Return (identity, is_running); failures read as "not running"."""
        if not await self.query_player_running():
            return TrackIdentity(), False
        try:
            return await self.bridge.probe_identity(), True
        except Exception as e:
            log.error("Error when receiving track id: %s", e)
            return TrackIdentity(), False

    async def query_full_track(self) -> Optional[TrackSnapshot]:
        identity, is_running = await self._query_identity()

        if identity.track_id == NO_TRACK or not identity.is_playing or not is_running:
            return TrackSnapshot.nothing_playing(identity.is_playing and is_running, is_running)

        cached = self._cached_track(identity, is_running)
        if cached is not None:
            return cached

        async with self._fetch_lock:
            # another caller may have fetched this track while we waited
            cached = self._cached_track(identity, is_running)
            if cached is not None:
                return cached
            return await self._fetch_full_track(identity, is_running)

    def _cached_track(self, identity: TrackIdentity,
                      is_running: bool) -> Optional[TrackSnapshot]:
        """Cached metadata overlaid with the fresh position, or None on a miss."""
        cached = self.cache.read()
        if cached.track_id != identity.track_id or not self.cache.is_valid():
            return None
        log.debug("Using cached track info for %s", identity.track_id)
        cached.position = identity.position
        cached.duration = identity.duration
        cached.is_playing = identity.is_playing
        cached.is_running = is_running
        return cached

    async def _fetch_full_track(self, identity: TrackIdentity,
                                is_running: bool) -> Optional[TrackSnapshot]:
        track_id = identity.track_id
        log.info("Fetching new track info for %s", track_id)
        try:
            info = await self.bridge.fetch_full_track()
        except Exception as e:
            log.error("Error getting track data: %s", e)
            return None

        snapshot = TrackSnapshot(
            track_id=track_id,
            title=info.title,
            artist=info.artist,
            album=info.album,
            artwork=info.artwork,
            position=identity.position,
            duration=identity.duration,
            is_playing=identity.is_playing,
            is_running=is_running,
        )
        self.cache.merge_full(snapshot, track_id)
        return self.cache.read()

    async def send_command(self, command: TransportCommand,
                           position: Optional[float] = None) -> bool:
        try:
            await self.bridge.send_transport(command, position)
        except Exception as e:
            log.error("Error sending %s to the player: %s", command.value, e)
            return False
        self.cache.clear()
        return True

    async def toggle_play_pause(self) -> bool:
        return await self.send_command(TransportCommand.PLAY_PAUSE)

    async def next_track(self) -> bool:
        return await self.send_command(TransportCommand.NEXT)

    async def previous_track(self) -> bool:
        return await self.send_command(TransportCommand.PREVIOUS)

    async def seek(self, position: float) -> bool:
        return await self.send_command(TransportCommand.SEEK, position)
