# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Track snapshot + short-lived cache of the current track.

A full refresh (title/artist/album/artwork) is expensive, so the last one is
kept for VALIDITY_WINDOW seconds and reused while the player keeps reporting
the same track id.  Position polls only amend position/play-state and never
extend the window.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

log = logging.getLogger(__name__)

VALIDITY_WINDOW = 5 * 60  # seconds

NOTHING_PLAYING_TITLE = "No track is playing"


@dataclass
class TrackSnapshot:
    """What the player reported about the current track."""
    track_id: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    artwork: Optional[str] = None  # data: URI, only set after a full fetch
    position: float = 0.0
    duration: float = 0.0
    is_playing: bool = False
    is_running: bool = False
    fetched_at: float = 0.0

    @property
    def has_track(self) -> bool:
        return self.track_id is not None

    @classmethod
    def nothing_playing(cls, is_playing: bool = False, is_running: bool = False) -> "TrackSnapshot":
        """Canonical snapshot for "player idle / not running"."""
        return cls(
            title=NOTHING_PLAYING_TITLE,
            artist="",
            album="",
            is_playing=is_playing,
            is_running=is_running,
        )


class TrackSnapshotCache:
    """Holds the most recent full track description.

    One instance per plugin process — there is exactly one player to track.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 validity_window: float = VALIDITY_WINDOW):
        self._clock = clock
        self._validity_window = validity_window
        self._entry = TrackSnapshot()
        self._timestamp = 0.0

    def read(self) -> TrackSnapshot:
        """Return a copy of the cached snapshot."""
        return replace(self._entry)

    @property
    def timestamp(self) -> float:
        return self._timestamp

    def is_valid(self) -> bool:
        if self._entry.track_id is None:
            return False
        return self._clock() - self._timestamp <= self._validity_window

    def merge_full(self, snapshot: TrackSnapshot, track_id: Optional[str]) -> bool:
        """Merge a full fetch.

        Returns False when *track_id* is the cached (still valid) track — only
        position/is_playing are taken over.  Otherwise the entry is replaced,
        the timestamp reset, and True returned.
        """
        if track_id is not None and track_id == self._entry.track_id and self.is_valid():
            self._entry.position = snapshot.position
            self._entry.is_playing = snapshot.is_playing
            return False

        now = self._clock()
        self._entry = replace(
            snapshot,
            track_id=track_id,
            artwork=snapshot.artwork if track_id is not None else None,
            fetched_at=now,
        )
        self._timestamp = now
        log.debug("Track cache replaced (track_id=%s)", track_id)
        return True

    def merge_position_only(self, position: float, is_playing: bool) -> None:
        if self._entry.track_id is None:
            return
        self._entry.position = position
        self._entry.is_playing = is_playing

    def clear(self) -> None:
        self._entry = TrackSnapshot()
        self._timestamp = 0.0
