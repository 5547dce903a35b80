"""
Media player bridges.

A bridge is the only code that talks to the desktop player.  The factory
function ``create_bridge`` reads config.json and returns the right one.

Supported types:
  - ``apple_music`` – Music.app on macOS via osascript (default)
"""

import logging

from ..config import cfg
from .apple_music import DEFAULT_ICON_SIZE, DEFAULT_SCRIPT_TIMEOUT, AppleMusicBridge
from .base import (NO_TRACK, BridgeError, FullTrackInfo, PlayerBridge,
                   ScriptError, TrackIdentity, TransportCommand)

logger = logging.getLogger(__name__)

__all__ = [
    "NO_TRACK",
    "AppleMusicBridge",
    "BridgeError",
    "FullTrackInfo",
    "PlayerBridge",
    "ScriptError",
    "TrackIdentity",
    "TransportCommand",
    "create_bridge",
]


def create_bridge() -> PlayerBridge:
    """Create the player bridge selected by config.json.

    Reads from config.json "player" section:
      type            – "apple_music" (default)
      script_timeout  – seconds before a player script is killed (default 5)
      icon_size       – artwork thumbnail edge in px (default 196)
    """
    player_type = cfg("player", "type", default="apple_music")
    timeout = float(cfg("player", "script_timeout", default=DEFAULT_SCRIPT_TIMEOUT))
    icon_size = int(cfg("player", "icon_size", default=DEFAULT_ICON_SIZE))

    if player_type != "apple_music":
        logger.warning("Unknown player type '%s', falling back to apple_music", player_type)

    logger.info("Player bridge: apple_music (timeout=%.1fs, icon=%dpx)", timeout, icon_size)
    return AppleMusicBridge(timeout=timeout, icon_size=icon_size)
