"""
Shared plumbing for the musickeys plugin.

  config.py        — JSON config loader + validated update rate
  track_cache.py   — TrackSnapshot + 5-minute track cache
  player_client.py — player queries/commands that never raise
  scheduler.py     — named recurring asyncio timers
  render.py        — snapshot → key visuals (pure)
  keys.py          — key roles, RenderKey, DrawResult
  plugin_base.py   — host HTTP/WebSocket endpoint
  bridges/         — player bridges (Apple Music)
"""
