"""Cross-device reconciliation of group state through the synced store."""

import logging
from typing import Any, Dict, List, Optional

from .exceptions import HostError, PartialImportFailure, PersistenceError
from .group_index import GroupIndex
from .host.base import ResourceDirectory
from .models import MergeResult, now
from .persistence import SYNC_GROUPS, SYNC_TIME, SYNC_URLS, StateStore, parse_groups
from .transfer import TabTransfer

logger = logging.getLogger(__name__)


def normalize_payload(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Reduce a synced payload to its comparable structure ``{tabGroups, urls}``.

    Malformed entries are dropped; the sync timestamp is not part of the structure.
    """
    data = data or {}
    urls: Dict[str, List[str]] = {}
    raw_urls = data.get(SYNC_URLS)
    if isinstance(raw_urls, dict):
        for domain, values in raw_urls.items():
            if not isinstance(domain, str) or not isinstance(values, list):
                continue
            clean = [url for url in values if isinstance(url, str) and url]
            if clean:
                urls[domain] = clean
    return {SYNC_GROUPS: parse_groups(data.get(SYNC_GROUPS)), SYNC_URLS: urls}


class SyncReconciler:
    """
    Pushes local groups to the synced store and merges remote groups back in.

    The merge is a union: it never removes a local entry, so a removal made on
    one device is undone by the next pull on a device that still has the tab,
    and a tab another device keeps syncing is re-opened here after it is closed.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        store: StateStore,
        groups: GroupIndex,
        transfer: TabTransfer,
        enabled: bool = False,
    ):
        self.directory = directory
        self.store = store
        self.groups = groups
        self.transfer = transfer
        self.enabled = enabled
        self.last_sync_time: Optional[float] = None
        # Last payload seen in (or written to) the synced store
        self._last_remote: Optional[Dict[str, Any]] = None

    async def local_payload(self) -> Dict[str, Any]:
        export = await self.transfer.export()
        return {SYNC_GROUPS: export["tabGroups"], SYNC_URLS: export["urls"]}

    async def needs_push(self) -> bool:
        """True when the local structure differs from the last known remote one."""
        local = await self.local_payload()
        return local != await self._known_remote()

    async def push(self) -> bool:
        """
        Write the local groups and URLs to the synced store if they changed.

        Returns:
            True if a write happened
        """
        if not self.enabled:
            return False

        local = await self.local_payload()
        try:
            remote = await self._known_remote()
        except PersistenceError as e:
            logger.warning("Sync push skipped, remote state unreadable: %s", e)
            return False
        if local == remote:
            return False

        stamp = now()
        payload = dict(local)
        payload[SYNC_TIME] = stamp
        try:
            await self.store.write_synced(payload)
        except PersistenceError as e:
            logger.warning("Sync push failed: %s", e)
            return False

        self._last_remote = local
        self.last_sync_time = stamp
        logger.info("Pushed %d group(s) to synced store", len(local[SYNC_GROUPS]))
        return True

    async def pull(self, payload: Optional[Dict[str, Any]] = None, skip_unchanged: bool = False) -> MergeResult:
        """
        Merge the remote payload (read from the synced store if not given).

        Args:
            payload: Remote payload, as delivered with a change notification
            skip_unchanged: Do nothing if the payload equals the last known one
                (e.g. the notification for our own push)
        """
        if not self.enabled:
            return MergeResult()

        if payload is None:
            try:
                payload = await self.store.read_synced()
            except PersistenceError as e:
                logger.warning("Sync pull failed: %s", e)
                return MergeResult()

        remote = normalize_payload(payload)
        if skip_unchanged and remote == self._last_remote:
            return MergeResult()

        result = await self.merge(remote)
        self._last_remote = remote
        if isinstance(payload.get(SYNC_TIME), (int, float)):
            self.last_sync_time = float(payload[SYNC_TIME])
        return result

    async def merge(self, remote: Dict[str, Any]) -> MergeResult:
        """
        Union ``remote`` into the local groups.

        Remote refs are kept only if the tab is open here and not already in
        another local group. Every remote URL not open here is opened in the
        background and appended to its domain's group.
        """
        live = {tab.id: tab for tab in await self.directory.list_tabs()}
        open_urls = {tab.url for tab in live.values()}
        result = MergeResult()

        for domain, refs in remote.get(SYNC_GROUPS, {}).items():
            for ref in refs:
                if ref not in live or ref in self.groups:
                    continue
                self.groups.assign(ref, domain)
                result.changed = True

        for domain, urls in remote.get(SYNC_URLS, {}).items():
            for url in urls:
                if url in open_urls:
                    continue
                try:
                    tab = await self.directory.create_tab(url, pinned=False, active=False)
                except HostError as e:
                    failure = PartialImportFailure(url, str(e))
                    logger.warning("Sync merge: %s", failure)
                    result.failures.append(failure)
                    continue
                open_urls.add(url)
                self.groups.assign(tab.id, domain)
                result.created.append(tab.id)
                result.changed = True

        if result.changed:
            await self.store.save_groups(self.groups)
            logger.info("Merged remote groups, opened %d tab(s)", len(result.created))
        return result

    def forget_remote(self) -> None:
        """Force the next push to compare against a fresh read of the store."""
        self._last_remote = None

    async def _known_remote(self) -> Dict[str, Any]:
        if self._last_remote is None:
            self._last_remote = normalize_payload(await self.store.read_synced())
        return self._last_remote
