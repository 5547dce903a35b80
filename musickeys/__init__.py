"""
musickeys — now-playing keys for a desktop media player.

The plugin watches the player (Apple Music via osascript) and draws what's
playing on device keys: track title/artist/artwork with a progress bar, a
play/pause key that mirrors player state, and next/previous keys.

Layout:
  plugin.py       — service entry point (HTTP + WebSocket endpoint for the host)
  coordinator.py  — key lifecycle, timers, rendering, key presses
  lib/            — cache, scheduler, player client/bridges, render, config
"""
