#!/usr/bin/env python3
# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
musickeys plugin service

Shows what Apple Music is playing on hardware keys and turns key presses
into playback commands.  The device host talks to us over HTTP + WebSocket
(see lib/plugin_base.py); Apple Music is queried through osascript.

Keys (component id "<plugin uuid>.<role>"):
  trackInfo  — title / artist / artwork / progress; press toggles playback
  playPause  — state 0 (not running), 1 (paused), 2 (playing)
  next       — next track
  previous   — previous track
"""

import asyncio
import logging

from .coordinator import DEFAULT_PROGRESS_INTERVAL, DeviceKeyCoordinator
from .lib.bridges import PlayerBridge, create_bridge
from .lib.config import PluginSettings, cfg
from .lib.plugin_base import DEFAULT_PORT, PluginBase
from .lib.player_client import PlaybackQueryClient
from .lib.scheduler import IntervalScheduler
from .lib.track_cache import TrackSnapshotCache

DEFAULT_PLUGIN_UUID = "com.jagk.apple_music"

logger = logging.getLogger("musickeys")


class MusicKeysPlugin(PluginBase):
    """Wires host events to the coordinator; owns cache, timers and bridge."""

    name = "musickeys"

    def __init__(self, bridge: PlayerBridge | None = None,
                 settings: PluginSettings | None = None,
                 plugin_uuid: str | None = None,
                 host: str | None = None, port: int | None = None):
        super().__init__(
            host=host or cfg("plugin", "host", default="127.0.0.1"),
            port=port or int(cfg("plugin", "port", default=DEFAULT_PORT)),
        )
        self.settings = settings or PluginSettings.from_config()
        self.bridge = bridge or create_bridge()
        self.cache = TrackSnapshotCache()
        self.scheduler = IntervalScheduler()
        self.client = PlaybackQueryClient(self.bridge, self.cache)
        self.coordinator = DeviceKeyCoordinator(
            host=self,
            client=self.client,
            scheduler=self.scheduler,
            settings=self.settings,
            plugin_uuid=plugin_uuid or cfg("plugin", "uuid", default=DEFAULT_PLUGIN_UUID),
            progress_interval=int(cfg("plugin", "progress_interval",
                                      default=DEFAULT_PROGRESS_INTERVAL)),
        )

    # ── PluginBase hooks ──

    def get_config(self) -> dict:
        return self.settings.as_dict()

    async def on_device_alive(self, serial_number: str, keys: list) -> None:
        await self.coordinator.on_device_alive(serial_number, keys)

    async def on_key_pressed(self, serial_number: str, key: dict) -> dict:
        return await self.coordinator.on_key_pressed(serial_number, key)

    async def on_device_disconnected(self, serial_number: str) -> None:
        await self.coordinator.on_device_disconnected(serial_number)

    async def on_plugin_stop(self) -> None:
        self.coordinator.on_stop()

    async def on_plugin_unload(self) -> None:
        self.coordinator.on_unload()

    async def on_config_update(self, data: dict) -> dict:
        if "updateRate" in data:
            await self.coordinator.apply_update_rate(data["updateRate"])
        return self.get_config()

    async def on_start(self):
        logger.info("Plugin uuid %s, update rate %d ms",
                    self.coordinator.plugin_uuid, self.settings.update_rate)

    async def on_stop(self):
        self.coordinator.on_stop()
        await self.bridge.close()

    async def get_status(self) -> dict:
        base = await super().get_status()
        cached = self.cache.read()
        base.update({
            "connected_devices": sorted(self.coordinator.connected_devices),
            "keys": {
                uid: {"role": key.role.value, "device": key.device_serial}
                for uid, key in self.coordinator.keys.items()
            },
            "timers": self.scheduler.active_names(),
            "config": self.get_config(),
            "cache": {
                "valid": self.cache.is_valid(),
                "track_id": cached.track_id,
                "title": cached.title,
                "artist": cached.artist,
            },
        })
        return base


async def main():
    """Main entry point."""
    plugin = MusicKeysPlugin()
    await plugin.run()


def run():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
