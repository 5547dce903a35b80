# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Key model: roles, rendering keys, and the best-effort draw result.

The host identifies a key's component as ``"<plugin uuid>.<role>"``, e.g.
``com.jagk.apple_music.trackInfo``.  Anything that does not carry our prefix
or names an unknown role is not ours to drive.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class KeyRole(Enum):
    TRACK_INFO = "trackInfo"
    PLAY_PAUSE = "playPause"
    NEXT = "next"
    PREVIOUS = "previous"

    @classmethod
    def from_cid(cls, cid: Optional[str], plugin_uuid: str) -> Optional["KeyRole"]:
        """Map a component id to a role, or None when it isn't one of ours."""
        prefix = f"{plugin_uuid}."
        if not cid or not cid.startswith(prefix):
            return None
        try:
            return cls(cid[len(prefix):])
        except ValueError:
            return None

    @property
    def has_timers(self) -> bool:
        return self in (KeyRole.TRACK_INFO, KeyRole.PLAY_PAUSE)


@dataclass
class RenderKey:
    """One key instance bound to one device."""
    uid: str
    cid: str
    role: KeyRole
    device_serial: str
    title: str = ""
    style: dict = field(default_factory=dict)
    data: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict, role: KeyRole, device_serial: str) -> "RenderKey":
        return cls(
            uid=str(payload["uid"]),
            cid=payload["cid"],
            role=role,
            device_serial=device_serial,
            title=payload.get("title") or "",
            style=dict(payload.get("style") or {}),
            data=dict(payload.get("data") or {}),
        )

    def to_payload(self) -> dict:
        """Minimal payload handed to the host — identity, title, style, data."""
        return {
            "uid": self.uid,
            "cid": self.cid,
            "title": self.title,
            "style": dict(self.style),
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class DrawResult:
    """Outcome of a best-effort draw / state push.

    Rendering never raises into the update loop; callers that care can look
    at the result instead.
    """
    status: str  # "drawn" | "skipped" | "failed"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "drawn"

    @classmethod
    def drawn(cls) -> "DrawResult":
        return cls("drawn")

    @classmethod
    def skipped(cls, reason: str) -> "DrawResult":
        return cls("skipped", reason)

    @classmethod
    def failed(cls, error: str) -> "DrawResult":
        return cls("failed", error)
