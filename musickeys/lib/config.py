# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the musickeys plugin.

Loads a single JSON config file.  Search order:
  1. $MUSICKEYS_CONFIG              (explicit override)
  2. /etc/musickeys/config.json
  3. config.json                    (CWD — handy for local dev)

Usage:
    from musickeys.lib.config import cfg

    port        = cfg("plugin", "port", default=8790)
    player_type = cfg("player", "type", default="apple_music")
    plugin      = cfg("plugin")  # returns the whole dict

The one user-tunable value, ``updateRate``, lives in ``PluginSettings``.  The
host pushes new values at runtime; they are validated here and rejected
values never replace the current one.
"""

import json
import math
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_RATE = 3000      # ms between full refreshes
DEFAULT_MIN_UPDATE_RATE = 500
DEFAULT_MAX_UPDATE_RATE = 60000

_config: dict | None = None


def _search_paths() -> list[str]:
    paths = []
    override = os.environ.get("MUSICKEYS_CONFIG")
    if override:
        paths.append(override)
    paths.extend([
        "/etc/musickeys/config.json",
        "config.json",
    ])
    return paths


class ConfigError(ValueError):
    """A configuration value was rejected."""


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    plugin = config.get("plugin") or {}
    if not plugin.get("uuid"):
        logger.warning("Config %s: missing plugin.uuid — using default", path)
    rate = plugin.get("update_rate")
    if rate is not None:
        lo = plugin.get("min_update_rate", DEFAULT_MIN_UPDATE_RATE)
        hi = plugin.get("max_update_rate", DEFAULT_MAX_UPDATE_RATE)
        if not isinstance(rate, (int, float)) or not lo <= rate <= hi:
            logger.warning("Config %s: plugin.update_rate %r outside %s-%s ms — using default",
                           path, rate, lo, hi)
    player = config.get("player") or {}
    player_type = player.get("type", "apple_music")
    if player_type not in ("apple_music",):
        logger.warning("Config %s: unknown player.type '%s'", path, player_type)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("plugin")                       → config["plugin"]
    cfg("player", "type")               → config["player"]["type"]
    cfg("plugin", "port", default=8790) → config["plugin"]["port"] or 8790
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()


class PluginSettings:
    """Validated runtime settings: the update rate and its bounds (ms)."""

    def __init__(self, update_rate: int = DEFAULT_UPDATE_RATE,
                 min_update_rate: int = DEFAULT_MIN_UPDATE_RATE,
                 max_update_rate: int = DEFAULT_MAX_UPDATE_RATE):
        if min_update_rate > max_update_rate:
            raise ConfigError(
                f"minUpdateRate {min_update_rate} is greater than maxUpdateRate {max_update_rate}")
        self.min_update_rate = int(min_update_rate)
        self.max_update_rate = int(max_update_rate)
        self.update_rate = self.validate_update_rate(update_rate)

    @classmethod
    def from_config(cls) -> "PluginSettings":
        """Build settings from the ``plugin`` config section.

        A bad ``update_rate`` in the file falls back to the default instead of
        stopping the plugin from starting.
        """
        lo = cfg("plugin", "min_update_rate", default=DEFAULT_MIN_UPDATE_RATE)
        hi = cfg("plugin", "max_update_rate", default=DEFAULT_MAX_UPDATE_RATE)
        rate = cfg("plugin", "update_rate", default=DEFAULT_UPDATE_RATE)
        try:
            return cls(rate, lo, hi)
        except ConfigError as e:
            logger.warning("Ignoring configured update rate: %s", e)
            return cls(DEFAULT_UPDATE_RATE, DEFAULT_MIN_UPDATE_RATE, DEFAULT_MAX_UPDATE_RATE)

    def validate_update_rate(self, value) -> int:
        """Return *value* as an int ms, or raise ConfigError."""
        if isinstance(value, bool):
            raise ConfigError(f"updateRate must be a number of milliseconds, got {value!r}")
        try:
            rate = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"updateRate must be a number of milliseconds, got {value!r}")
        if math.isnan(rate) or not self.min_update_rate <= rate <= self.max_update_rate:
            raise ConfigError(
                f"updateRate must be between {self.min_update_rate} and "
                f"{self.max_update_rate} ms, got {value!r}")
        return int(rate)

    def set_update_rate(self, value) -> int:
        """Validate and store a new update rate.  On error the old value stays."""
        rate = self.validate_update_rate(value)
        if rate != self.update_rate:
            logger.info("Update rate changed %d ms -> %d ms", self.update_rate, rate)
        self.update_rate = rate
        return rate

    def as_dict(self) -> dict:
        """Host-facing shape (camelCase keys)."""
        return {
            "updateRate": self.update_rate,
            "minUpdateRate": self.min_update_rate,
            "maxUpdateRate": self.max_update_rate,
        }
