"""Data models for tab state, sessions and settings."""

import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Literal, Optional

from .config import (
    AUTO_SUSPEND,
    AUTO_GROUP,
    SYNC_ENABLED,
    IDLE_TIMEOUT_MINUTES,
    MAX_SUSPENDED_TABS,
)
from .exceptions import PartialImportFailure

# Opaque host tab identifier, never reused once the tab closes
TabRef = int

IdleState = Literal["active", "idle", "locked"]


@dataclass
class TabSnapshot:
    """Point-in-time view of one open tab as reported by the host."""
    id: TabRef
    url: str
    title: str = ""
    pinned: bool = False
    audible: bool = False
    active: bool = False
    discarded: bool = False
    window_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "pinned": self.pinned,
            "audible": self.audible,
            "active": self.active,
            "discarded": self.discarded,
            "windowId": self.window_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TabSnapshot":
        return cls(
            id=data["id"],
            url=data.get("url", ""),
            title=data.get("title", ""),
            pinned=bool(data.get("pinned", False)),
            audible=bool(data.get("audible", False)),
            active=bool(data.get("active", False)),
            discarded=bool(data.get("discarded", False)),
            window_id=data.get("windowId"),
        )


@dataclass
class SessionEntry:
    """One tab captured in a session snapshot."""
    url: str
    title: str = ""
    pinned: bool = False
    group: Optional[str] = None
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionEntry":
        return cls(
            url=data["url"],
            title=data.get("title", ""),
            pinned=bool(data.get("pinned", False)),
            group=data.get("group"),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass
class Settings:
    """User settings persisted in the local store."""
    auto_suspend: bool = AUTO_SUSPEND
    auto_group: bool = AUTO_GROUP
    sync_enabled: bool = SYNC_ENABLED
    idle_timeout_minutes: float = IDLE_TIMEOUT_MINUTES
    max_suspended: int = MAX_SUSPENDED_TABS

    # Persisted (camelCase) key -> attribute name
    _KEYS = {
        "autoSuspend": "auto_suspend",
        "autoGroup": "auto_group",
        "syncEnabled": "sync_enabled",
        "idleTimeoutMinutes": "idle_timeout_minutes",
        "maxSuspended": "max_suspended",
    }

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_minutes * 60

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for key, attr in self._KEYS.items()}

    def updated(self, data: Optional[Dict[str, Any]]) -> "Settings":
        """
        Return a copy with the known keys of ``data`` applied.

        Unknown keys (e.g. UI-only flags) and values of the wrong type are ignored.
        """
        values = {attr: getattr(self, attr) for attr in self._KEYS.values()}
        if not isinstance(data, dict):
            return Settings(**values)

        for key, attr in self._KEYS.items():
            if key not in data:
                continue
            value = data[key]
            current = values[attr]
            if isinstance(current, bool):
                if isinstance(value, bool):
                    values[attr] = value
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                converted = type(current)(value)
                # Checked after conversion so 0.5 -> 0 is rejected for int fields
                if converted > 0:
                    values[attr] = converted
        return Settings(**values)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        return cls().updated(data)


@dataclass
class RestoreResult:
    """Outcome of restoring a session snapshot."""
    created: List[TabRef] = field(default_factory=list)
    failures: List[PartialImportFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": list(self.created),
            "failures": [f.to_dict() for f in self.failures],
        }


@dataclass
class ImportResult(RestoreResult):
    """Outcome of importing an export payload."""
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["skipped"] = list(self.skipped)
        return data


@dataclass
class MergeResult(RestoreResult):
    """Outcome of merging a remote sync payload into the local groups."""
    changed: bool = False


def now() -> float:
    """Current wall-clock timestamp used for snapshots and sync stamps."""
    return time.time()
