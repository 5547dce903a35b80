# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PluginBase — host-facing plumbing for the musickeys plugin.

The device host posts lifecycle and key events over HTTP and keeps a
WebSocket open to receive draw / state messages.

Routes:
    GET  /ws                 — host connection; receives draw + set messages
    POST /plugin/alive       — {serialNumber, keys}
    POST /plugin/data        — {serialNumber, data: {key}}   (key press)
    POST /plugin/disconnect  — {serialNumber}
    POST /plugin/stop
    POST /plugin/unload
    GET  /config             — current settings
    POST /config             — {updateRate}; 400 + message if rejected
    GET  /status

Subclass contract:

    class MyPlugin(PluginBase):
        async def on_device_alive(self, serial, keys): ...
        async def on_key_pressed(self, serial, key) -> dict: ...
        async def on_device_disconnected(self, serial): ...
        async def on_plugin_stop(self): ...
        async def on_plugin_unload(self): ...
        async def on_config_update(self, data) -> dict: ...   # may raise ConfigError
        def get_config(self) -> dict: ...

Optional overrides:
    on_start()   — called after HTTP server is up
    on_stop()    — called during shutdown
    get_status() — richer /status payload
"""

import asyncio
import json
import logging
import signal
from abc import ABC, abstractmethod

from aiohttp import web

from .config import ConfigError

log = logging.getLogger(__name__)

DEFAULT_PORT = 8790


class HostNotConnected(ConnectionError):
    """No host WebSocket is attached, so nothing can be drawn."""


class DeviceHost(ABC):
    """What the coordinator needs from the device framework."""

    @abstractmethod
    async def draw(self, serial_number: str, key: dict, mode: str = "draw") -> None: ...

    @abstractmethod
    async def set_key_state(self, serial_number: str, key: dict, state: dict) -> None: ...

    @abstractmethod
    def get_config(self) -> dict: ...


class PluginBase(DeviceHost):
    name: str = "musickeys"

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT):
        self.host = host
        self.port = port
        self.running: bool = False
        self._ws_clients: set[web.WebSocketResponse] = set()
        self._runner: web.AppRunner | None = None

    # ── Event hooks (subclass must implement) ──

    async def on_device_alive(self, serial_number: str, keys: list) -> None:
        raise NotImplementedError

    async def on_key_pressed(self, serial_number: str, key: dict) -> dict:
        raise NotImplementedError

    async def on_device_disconnected(self, serial_number: str) -> None:
        raise NotImplementedError

    async def on_plugin_stop(self) -> None:
        raise NotImplementedError

    async def on_plugin_unload(self) -> None:
        raise NotImplementedError

    async def on_config_update(self, data: dict) -> dict:
        raise NotImplementedError

    # ── DeviceHost (outbound to the host WebSocket) ──

    async def _send_to_host(self, message: dict):
        if not self._ws_clients:
            raise HostNotConnected("No host connected")

        payload = json.dumps(message)
        disconnected = set()
        delivered = 0
        for ws in list(self._ws_clients):
            try:
                await ws.send_str(payload)
                delivered += 1
            except Exception:
                disconnected.add(ws)

        self._ws_clients -= disconnected
        if not delivered:
            raise HostNotConnected("Host connection lost")

    async def draw(self, serial_number: str, key: dict, mode: str = "draw") -> None:
        await self._send_to_host({
            "type": "draw",
            "serialNumber": serial_number,
            "key": key,
            "mode": mode,
        })

    async def set_key_state(self, serial_number: str, key: dict, state: dict) -> None:
        await self._send_to_host({
            "type": "set",
            "serialNumber": serial_number,
            "key": key,
            "state": state,
        })

    # ── HTTP + WebSocket server ──

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_post("/plugin/alive", self._handle_alive)
        app.router.add_post("/plugin/data", self._handle_data)
        app.router.add_post("/plugin/disconnect", self._handle_disconnect)
        app.router.add_post("/plugin/stop", self._handle_stop)
        app.router.add_post("/plugin/unload", self._handle_unload)
        app.router.add_get("/config", self._handle_get_config)
        app.router.add_post("/config", self._handle_set_config)
        app.router.add_get("/status", self._handle_status)
        return app

    async def start(self):
        """Create the aiohttp app, start listening."""
        self.running = True
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("Plugin %s: HTTP + WebSocket on %s:%d", self.name, self.host, self.port)
        await self.on_start()

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Clean up resources."""
        self.running = False
        await self.on_stop()

        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ── WebSocket handler ──

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        log.info("Host connected (%d total)", len(self._ws_clients))

        try:
            async for msg in ws:
                pass  # push-only, events arrive over HTTP
        finally:
            self._ws_clients.discard(ws)
            log.info("Host disconnected (%d remaining)", len(self._ws_clients))

        return ws

    # ── HTTP route handlers ──

    async def _read_json(self, request: web.Request) -> dict:
        try:
            data = await request.json()
        except Exception:
            return {}
        return data if isinstance(data, dict) else {}

    def _error(self, message: str, status: int = 400) -> web.Response:
        return web.json_response({"status": "error", "message": message}, status=status)

    async def _handle_alive(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        serial = data.get("serialNumber")
        if not serial:
            return self._error("serialNumber is required")
        await self.on_device_alive(str(serial), data.get("keys") or [])
        return web.json_response({"status": "success"})

    async def _handle_data(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        serial = data.get("serialNumber")
        key = (data.get("data") or {}).get("key")
        if not serial or not isinstance(key, dict):
            return self._error("serialNumber and data.key are required")
        result = await self.on_key_pressed(str(serial), key)
        return web.json_response(result)

    async def _handle_disconnect(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        serial = data.get("serialNumber")
        if not serial:
            return self._error("serialNumber is required")
        await self.on_device_disconnected(str(serial))
        return web.json_response({"status": "success"})

    async def _handle_stop(self, request: web.Request) -> web.Response:
        await self.on_plugin_stop()
        return web.json_response({"status": "success"})

    async def _handle_unload(self, request: web.Request) -> web.Response:
        await self.on_plugin_unload()
        return web.json_response({"status": "success"})

    async def _handle_get_config(self, request: web.Request) -> web.Response:
        return web.json_response(self.get_config())

    async def _handle_set_config(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        try:
            config = await self.on_config_update(data)
        except ConfigError as e:
            log.warning("Rejected config update %s: %s", data, e)
            return self._error(str(e))
        return web.json_response({"status": "success", "config": config})

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self.get_status())

    async def get_status(self) -> dict:
        """Return plugin status. Override in subclass for richer data."""
        return {
            "plugin": self.name,
            "host_connections": len(self._ws_clients),
        }

    # ── Subclass hooks ──

    async def on_start(self):
        """Called after HTTP server is up."""

    async def on_stop(self):
        """Called during shutdown."""
