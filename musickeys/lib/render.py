# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Pure snapshot → key visuals mapping.  No I/O here.

``key_data`` is the per-key user config the host stores on the key:
  showArtwork       — False hides artwork (generic icon instead)
  showProgress      — False hides the progress bar
  showTime          — True adds a "m:ss / m:ss" third title line
  progressBarColor  — CSS colour for the bar
"""

from dataclasses import dataclass
from typing import Optional

from .track_cache import TrackSnapshot

ICON_MUSIC = "mdi mdi-music"
ICON_NO_MUSIC = "mdi mdi-music-off"
TITLE_NO_INFO = "No track info"
TITLE_NOT_PLAYING = "No track playing"
DEFAULT_PROGRESS_COLOR = "#1ED760"

STATE_NOT_RUNNING = 0
STATE_PAUSED = 1
STATE_PLAYING = 2


@dataclass
class TrackInfoRender:
    title: str
    icon: str
    show_title: bool = True
    show_icon: bool = True
    progress: Optional[float] = None
    show_progress: bool = False
    progress_bar_color: Optional[str] = None


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    seconds = max(0, int(seconds or 0))
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"


def progress_fraction(position: float, duration: float) -> float:
    if not duration or duration <= 0:
        return 0.0
    return min(1.0, max(0.0, position / duration))


def update_time_line(title: str, position: float, duration: float) -> str:
    """Replace the third title line (elapsed / total) if the title has one."""
    parts = title.split("\n")
    if len(parts) < 3:
        return title
    parts[2] = f"{format_time(position)} / {format_time(duration)}"
    return "\n".join(parts)


def _has_artwork(snapshot: TrackSnapshot) -> bool:
    return bool(snapshot.artwork) and snapshot.artwork.startswith("data:image")


def compute_track_info_render(snapshot: Optional[TrackSnapshot],
                              key_data: Optional[dict] = None) -> TrackInfoRender:
    key_data = key_data or {}

    if snapshot is None:
        return TrackInfoRender(title=TITLE_NO_INFO, icon=ICON_NO_MUSIC)

    if not snapshot.has_track:
        return TrackInfoRender(title=TITLE_NOT_PLAYING, icon=ICON_NO_MUSIC)

    title = f"{snapshot.title or ''}\n{snapshot.artist or ''}"
    if key_data.get("showTime"):
        title += f"\n{format_time(snapshot.position)} / {format_time(snapshot.duration)}"

    if _has_artwork(snapshot) and key_data.get("showArtwork") is not False:
        icon = snapshot.artwork
    else:
        icon = ICON_MUSIC

    show_progress = key_data.get("showProgress") is not False
    return TrackInfoRender(
        title=title,
        icon=icon,
        progress=progress_fraction(snapshot.position, snapshot.duration),
        show_progress=show_progress,
        progress_bar_color=key_data.get("progressBarColor") or DEFAULT_PROGRESS_COLOR,
    )


def apply_to_style(style: Optional[dict], render: TrackInfoRender) -> dict:
    """Return a new style dict with *render* applied on top of *style*."""
    new_style = dict(style or {})
    new_style["icon"] = render.icon
    new_style["showIcon"] = render.show_icon
    new_style["showTitle"] = render.show_title
    new_style["showProgress"] = render.show_progress
    if render.show_progress:
        new_style["progress"] = render.progress
        new_style["progressBarColor"] = render.progress_bar_color
    return new_style


def compute_play_pause_state(snapshot: Optional[TrackSnapshot]) -> int:
    """0 = player not running, 1 = running but paused, 2 = playing."""
    if snapshot is None or not snapshot.is_running:
        return STATE_NOT_RUNNING
    return STATE_PLAYING if snapshot.is_playing else STATE_PAUSED
