# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
DeviceKeyCoordinator — turns host lifecycle/key events into timers, player
queries and draw calls.

Per key:  uninitialized → provisioned (timers running) → torn down.

  trackInfo  — rendered at once, then a full refresh every update_rate ms and
               a lightweight progress refresh every second
  playPause  — state pushed at once, then refreshed every update_rate ms
  next/prev  — no timers; presses re-render the device's trackInfo keys

Timer callbacks carry only the key uid and look the key up again when they
fire, so a torn-down or re-provisioned key is always seen as it is now.
Nothing is drawn for a device that isn't in the connected set.
"""

import logging
from functools import partial
from typing import Iterable

from .lib.config import PluginSettings
from .lib.keys import DrawResult, KeyRole, RenderKey
from .lib.player_client import PlaybackQueryClient
from .lib.plugin_base import DeviceHost
from .lib.render import (apply_to_style, compute_play_pause_state,
                         compute_track_info_render, progress_fraction,
                         update_time_line)
from .lib.scheduler import IntervalScheduler, progress_timer_name

log = logging.getLogger(__name__)

DEFAULT_PROGRESS_INTERVAL = 1000  # ms


class DeviceKeyCoordinator:

    def __init__(self, host: DeviceHost, client: PlaybackQueryClient,
                 scheduler: IntervalScheduler, settings: PluginSettings,
                 plugin_uuid: str,
                 progress_interval: int = DEFAULT_PROGRESS_INTERVAL):
        self.host = host
        self.client = client
        self.scheduler = scheduler
        self.settings = settings
        self.plugin_uuid = plugin_uuid
        self.progress_interval = progress_interval
        self.connected_devices: set[str] = set()
        self.keys: dict[str, RenderKey] = {}

    # ── Lookups ──

    def is_connected(self, serial_number: str) -> bool:
        return serial_number in self.connected_devices

    def _live_key(self, uid: str) -> RenderKey | None:
        """The key for *uid* if it still exists and its device is connected."""
        key = self.keys.get(uid)
        if key is None or not self.is_connected(key.device_serial):
            return None
        return key

    def _replaced(self, key: RenderKey) -> bool:
        """True when a newer key object took over *key*'s uid while we awaited."""
        return self.keys.get(key.uid, key) is not key

    def keys_for_device(self, serial_number: str,
                        role: KeyRole | None = None) -> list[RenderKey]:
        return [k for k in self.keys.values()
                if k.device_serial == serial_number and (role is None or k.role is role)]

    # ── Lifecycle events ──

    async def on_device_alive(self, serial_number: str, keys: Iterable[dict]) -> None:
        keys = list(keys)
        self.connected_devices.add(serial_number)
        log.info("Device %s alive", serial_number)

        declared = {str(k.get("uid")) for k in keys if isinstance(k, dict) and k.get("uid")}
        for stale in self.keys_for_device(serial_number):
            if stale.uid not in declared:
                log.info("Key %s no longer declared on %s, tearing down", stale.uid, serial_number)
                self.teardown_key(stale.uid)

        for payload in keys:
            if not isinstance(payload, dict) or not payload.get("uid"):
                log.warning("Ignoring key without uid on %s: %r", serial_number, payload)
                continue
            role = KeyRole.from_cid(payload.get("cid"), self.plugin_uuid)
            if role is None:
                log.warning("Ignoring key %s with unknown cid %s",
                            payload.get("uid"), payload.get("cid"))
                continue

            key = RenderKey.from_payload(payload, role, serial_number)
            log.info("Processing key %s (%s)", key.uid, role.value)
            self.scheduler.cancel_for_key(key.uid)
            self.keys[key.uid] = key
            await self._provision(key)

    async def _provision(self, key: RenderKey) -> None:
        uid = key.uid
        rate = self.settings.update_rate

        if key.role is KeyRole.TRACK_INFO:
            log.info("Setting up Track Info key %s (every %d ms)", uid, rate)
            await self.refresh_track_info(uid)
            if self.keys.get(uid) is not key:
                return  # torn down while rendering
            self.scheduler.schedule(uid, partial(self.refresh_track_info, uid), rate)
            if key.data.get("showProgress") is not False:
                self.scheduler.schedule(progress_timer_name(uid),
                                        partial(self.refresh_progress, uid),
                                        self.progress_interval)
        elif key.role is KeyRole.PLAY_PAUSE:
            log.info("Setting up Play/Pause key %s (every %d ms)", uid, rate)
            await self.refresh_play_pause(uid)
            if self.keys.get(uid) is not key:
                return
            self.scheduler.schedule(uid, partial(self.refresh_play_pause, uid), rate)
        elif key.role in (KeyRole.NEXT, KeyRole.PREVIOUS):
            pass  # stateless
        else:
            raise AssertionError(f"Unhandled key role {key.role!r}")

    def teardown_key(self, uid: str) -> None:
        self.scheduler.cancel_for_key(uid)
        self.keys.pop(uid, None)

    async def on_device_disconnected(self, serial_number: str) -> None:
        log.info("Device %s disconnected, tearing down its keys", serial_number)
        for key in self.keys_for_device(serial_number):
            self.teardown_key(key.uid)
        self.connected_devices.discard(serial_number)

    def on_stop(self) -> None:
        log.info("Plugin stopping, clearing intervals")
        self._teardown_all()

    def on_unload(self) -> None:
        log.info("Plugin unloading, clearing intervals")
        self._teardown_all()

    def _teardown_all(self) -> None:
        self.scheduler.cancel_all()
        self.connected_devices.clear()
        self.keys.clear()

    async def apply_update_rate(self, value) -> int:
        """Validate + store a new update rate, then re-provision running keys.

        Raises ConfigError without touching any timer when *value* is rejected.
        """
        old_rate = self.settings.update_rate
        rate = self.settings.set_update_rate(value)
        if rate == old_rate:
            return rate
        for key in list(self.keys.values()):
            if self.keys.get(key.uid) is not key:
                continue
            if key.role.has_timers and self.is_connected(key.device_serial):
                self.scheduler.cancel_for_key(key.uid)
                await self._provision(key)
        return rate

    # ── Key presses ──

    async def on_key_pressed(self, serial_number: str, payload: dict) -> dict:
        if not self.is_connected(serial_number):
            log.warning("Device %s not connected, ignoring key press", serial_number)
            return {"status": "error", "message": "Device not connected"}

        uid = str(payload.get("uid") or "")
        key = self.keys.get(uid)
        if key is None or key.device_serial != serial_number:
            role = KeyRole.from_cid(payload.get("cid"), self.plugin_uuid)
            if not uid or role is None:
                log.warning("Unknown key pressed on %s: %r", serial_number, payload.get("cid"))
                return {"status": "error", "message": "Unknown key"}
            key = RenderKey.from_payload(payload, role, serial_number)

        if key.role is KeyRole.TRACK_INFO:
            log.info("Track Info key pressed")
            await self.client.toggle_play_pause()
            await self._render_track_info(key)
        elif key.role is KeyRole.PLAY_PAUSE:
            log.info("Play/Pause key pressed")
            await self.client.toggle_play_pause()
            result = await self._render_play_pause(key)
            if not result.ok:
                return {"status": "error", "message": result.error or "Failed to update key"}
        elif key.role is KeyRole.NEXT:
            log.info("Next Track key pressed")
            await self.client.next_track()
            await self._rerender_track_info_keys(serial_number)
        elif key.role is KeyRole.PREVIOUS:
            log.info("Previous Track key pressed")
            await self.client.previous_track()
            await self._rerender_track_info_keys(serial_number)
        else:
            raise AssertionError(f"Unhandled key role {key.role!r}")
        return {"status": "success"}

    async def _rerender_track_info_keys(self, serial_number: str) -> None:
        for key in self.keys_for_device(serial_number, KeyRole.TRACK_INFO):
            await self.refresh_track_info(key.uid)

    # ── Timer callbacks (look the key up on every call) ──

    async def refresh_track_info(self, uid: str) -> None:
        key = self._live_key(uid)
        if key is None:
            log.debug("Key %s gone or device disconnected, skipping track info update", uid)
            return
        await self._render_track_info(key)

    async def refresh_play_pause(self, uid: str) -> None:
        key = self._live_key(uid)
        if key is None:
            log.debug("Key %s gone or device disconnected, skipping play/pause update", uid)
            return
        await self._render_play_pause(key)

    async def refresh_progress(self, uid: str) -> None:
        if self._live_key(uid) is None:
            return

        playback = await self.client.query_light_position()
        if not playback.is_playing:
            return
        if not self.client.cache.read().has_track:
            return

        # the key may have been torn down while we were waiting on the player
        key = self._live_key(uid)
        if key is None or key.data.get("showProgress") is False:
            return

        key.style = dict(key.style)
        key.style["progress"] = progress_fraction(playback.position, playback.duration)
        key.title = update_time_line(key.title, playback.position, playback.duration)
        await self.safe_draw(key)

    async def _render_track_info(self, key: RenderKey) -> DrawResult:
        log.debug("Updating full track info for key %s", key.uid)
        snapshot = await self.client.query_full_track()
        if self._replaced(key):
            return DrawResult.skipped("Key re-provisioned")
        if snapshot is None:
            log.error("Failed to get track info")

        render = compute_track_info_render(snapshot, key.data)
        key.style = apply_to_style(key.style, render)
        key.title = render.title
        return await self.safe_draw(key)

    async def _render_play_pause(self, key: RenderKey) -> DrawResult:
        snapshot = await self.client.query_full_track()
        if self._replaced(key):
            return DrawResult.skipped("Key re-provisioned")
        state = compute_play_pause_state(snapshot)
        return await self.safe_set_state(key, {"state": state})

    # ── Best-effort output to the host ──

    async def safe_draw(self, key: RenderKey, mode: str = "draw") -> DrawResult:
        if not self.is_connected(key.device_serial):
            log.warning("Device %s not connected, draw skipped", key.device_serial)
            return DrawResult.skipped("Device not connected")
        try:
            await self.host.draw(key.device_serial, key.to_payload(), mode)
        except Exception as e:
            log.error("Error drawing to device %s: %s", key.device_serial, e)
            return DrawResult.failed(str(e))
        return DrawResult.drawn()

    async def safe_set_state(self, key: RenderKey, state: dict) -> DrawResult:
        if not self.is_connected(key.device_serial):
            log.warning("Device %s not connected, state update skipped", key.device_serial)
            return DrawResult.skipped("Device not connected")
        try:
            await self.host.set_key_state(key.device_serial, key.to_payload(), state)
        except Exception as e:
            log.error("Error setting key state on device %s: %s", key.device_serial, e)
            return DrawResult.failed(str(e))
        return DrawResult.drawn()
