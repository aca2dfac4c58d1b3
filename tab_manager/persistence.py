"""Typed access to durable state through the persistence gateway."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import PersistenceError
from .group_index import GroupIndex
from .host.base import PersistenceGateway
from .models import SessionEntry, Settings, TabRef, TabSnapshot

logger = logging.getLogger(__name__)

# Local store layout
TAB_GROUPS = "tabGroups"
SUSPENDED_TABS = "suspendedTabs"
SAVED_SESSION = "savedSession"
SETTINGS = "settings"
RECENT_TABS = "recentTabs"
LAST_SAVED = "lastSaved"

LOCAL_KEYS = (TAB_GROUPS, SUSPENDED_TABS, SAVED_SESSION, SETTINGS, RECENT_TABS, LAST_SAVED)

# Synced payload layout
SYNC_GROUPS = "tabGroups"
SYNC_URLS = "urls"
SYNC_TIME = "lastSyncTime"

SYNC_KEYS = (SYNC_GROUPS, SYNC_URLS, SYNC_TIME)


class StateStore:
    """
    Sole reader/writer of the local and synced areas.

    Local writes never raise: a failed write is logged, its values are kept
    and sent again together with the next write. The in-memory state stays
    authoritative in the meantime.
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self._dirty: Dict[str, Any] = {}

    @property
    def has_pending_writes(self) -> bool:
        return bool(self._dirty)

    async def load(self) -> Dict[str, Any]:
        """Read every local key; an unreadable store behaves like an empty one."""
        try:
            return await self.gateway.get_local(LOCAL_KEYS)
        except PersistenceError as e:
            logger.error("Failed to load local state, starting empty: %s", e)
            return {}

    async def write(self, values: Dict[str, Any]) -> bool:
        """
        Write ``values`` (plus anything left over from failed writes).

        Returns:
            True if the store accepted the write
        """
        payload = dict(self._dirty)
        payload.update(values)
        if not payload:
            return True
        try:
            await self.gateway.set_local(payload)
        except PersistenceError as e:
            logger.warning("Failed to persist %s, will retry on next write: %s", ", ".join(payload), e)
            self._dirty = payload
            return False
        self._dirty = {}
        return True

    async def flush(self) -> bool:
        """Retry any writes that failed earlier."""
        return await self.write({})

    # Typed writers

    async def save_groups(self, index: GroupIndex) -> bool:
        return await self.write({TAB_GROUPS: index.mapping()})

    async def save_suspended(self, refs: Iterable[TabRef]) -> bool:
        return await self.write({SUSPENDED_TABS: list(refs)})

    async def save_session(self, entries: List[SessionEntry], timestamp: float) -> bool:
        # One write so the snapshot and its timestamp replace the old ones together
        return await self.write({
            SAVED_SESSION: [entry.to_dict() for entry in entries],
            LAST_SAVED: timestamp,
        })

    async def save_settings(self, settings: Settings) -> bool:
        return await self.write({SETTINGS: settings.to_dict()})

    async def save_recent(self, tabs: List[TabSnapshot]) -> bool:
        return await self.write({RECENT_TABS: [tab.to_dict() for tab in tabs]})

    async def load_session(self) -> List[SessionEntry]:
        try:
            data = await self.gateway.get_local([SAVED_SESSION])
        except PersistenceError as e:
            logger.error("Failed to read saved session: %s", e)
            return []
        return parse_session(data.get(SAVED_SESSION))

    async def load_settings(self, defaults: Optional[Settings] = None) -> Settings:
        base = defaults or Settings()
        try:
            data = await self.gateway.get_local([SETTINGS])
        except PersistenceError as e:
            logger.error("Failed to read settings, using defaults: %s", e)
            return base
        return base.updated(data.get(SETTINGS))

    # Synced area (errors propagate to the sync reconciler)

    async def read_synced(self) -> Dict[str, Any]:
        return await self.gateway.get_synced(SYNC_KEYS)

    async def write_synced(self, payload: Dict[str, Any]) -> None:
        await self.gateway.set_synced(payload)


def parse_groups(raw: Any) -> Dict[str, List[TabRef]]:
    """Coerce a stored ``tabGroups`` value, dropping anything malformed."""
    if not isinstance(raw, dict):
        return {}
    groups: Dict[str, List[TabRef]] = {}
    for key, refs in raw.items():
        if not isinstance(key, str) or not isinstance(refs, list):
            continue
        clean = [ref for ref in refs if isinstance(ref, int) and not isinstance(ref, bool)]
        if clean:
            groups[key] = clean
    return groups


def parse_refs(raw: Any) -> List[TabRef]:
    if not isinstance(raw, list):
        return []
    return [ref for ref in raw if isinstance(ref, int) and not isinstance(ref, bool)]


def parse_session(raw: Any) -> List[SessionEntry]:
    if not isinstance(raw, list):
        return []
    entries = []
    for item in raw:
        if isinstance(item, dict) and isinstance(item.get("url"), str):
            entries.append(SessionEntry.from_dict(item))
    return entries


def parse_recent(raw: Any) -> List[TabSnapshot]:
    if not isinstance(raw, list):
        return []
    tabs = []
    for item in raw:
        if isinstance(item, dict) and "id" in item:
            tabs.append(TabSnapshot.from_dict(item))
    return tabs
