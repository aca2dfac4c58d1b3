"""Whole-session snapshot capture and additive restore."""

import logging
from typing import List, Optional

from .exceptions import HostError, PartialImportFailure
from .group_index import GroupIndex, extract_group_key
from .host.base import ResourceDirectory
from .models import RestoreResult, SessionEntry, now
from .persistence import StateStore

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Captures every open tab into a snapshot that fully replaces the previous one.

    Restore is additive: it opens one tab per entry, never closes existing
    tabs and never skips entries whose URL is already open.
    """

    def __init__(self, directory: ResourceDirectory, store: StateStore, groups: GroupIndex):
        self.directory = directory
        self.store = store
        self.groups = groups
        self.last_capture: Optional[float] = None

    async def capture(self) -> List[SessionEntry]:
        """
        Snapshot the open tabs and persist them as the saved session.

        Returns:
            The captured entries, in host order
        """
        tabs = await self.directory.list_tabs()
        timestamp = now()
        entries = []
        for tab in tabs:
            group = self.groups.group_of(tab.id) or extract_group_key(tab.url)
            entries.append(SessionEntry(
                url=tab.url,
                title=tab.title,
                pinned=tab.pinned,
                group=group,
                timestamp=timestamp,
            ))

        await self.store.save_session(entries, timestamp)
        self.last_capture = timestamp
        logger.debug("Captured session with %d tab(s)", len(entries))
        return entries

    async def restore(self, snapshot: Optional[List[SessionEntry]] = None) -> RestoreResult:
        """
        Re-open every entry of ``snapshot`` (or of the saved session) in order.

        A tab that fails to open is logged and recorded; the rest still open.
        Opened tabs are placed in their recorded group.
        """
        if snapshot is None:
            snapshot = await self.store.load_session()

        result = RestoreResult()
        for entry in snapshot:
            if not entry.url:
                continue
            try:
                tab = await self.directory.create_tab(entry.url, pinned=entry.pinned, active=False)
            except HostError as e:
                failure = PartialImportFailure(entry.url, str(e))
                logger.warning("Session restore: %s", failure)
                result.failures.append(failure)
                continue
            result.created.append(tab.id)

            key = entry.group or extract_group_key(tab.url)
            if key:
                self.groups.assign(tab.id, key)

        if result.created:
            await self.store.save_groups(self.groups)
        logger.info(
            "Restored %d of %d session tab(s)",
            len(result.created), len(snapshot),
        )
        return result
