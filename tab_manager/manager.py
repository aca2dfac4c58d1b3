"""Tab lifecycle manager: owns all process-wide state and reacts to host events."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .config import (
    RECENT_TABS_LIMIT,
    RESERVED_SCHEMES,
    RESTORE_ON_STARTUP,
    SNAPSHOT_INTERVAL,
    SYNC_INTERVAL,
)
from .events import (
    EventChannel,
    HostEvent,
    IdleStateChanged,
    StorageChanged,
    TabActivated,
    TabChanged,
    TabRemoved,
)
from .exceptions import TabManagerError, TransientResourceError
from .group_index import GroupIndex, extract_group_key
from .host.base import LOCAL_AREA, SYNC_AREA, PersistenceGateway, ResourceDirectory
from .models import ImportResult, IdleState, RestoreResult, SessionEntry, Settings, TabRef
from .persistence import (
    RECENT_TABS,
    SETTINGS,
    SUSPENDED_TABS,
    SYNC_GROUPS,
    SYNC_URLS,
    TAB_GROUPS,
    StateStore,
    parse_groups,
    parse_recent,
    parse_refs,
)
from .recent_tabs import RecentTabs
from .session_store import SessionStore
from .suspension import PENDING, SuspensionScheduler
from .sync import SyncReconciler
from .transfer import TabTransfer

logger = logging.getLogger(__name__)

IDLE_STATES = ("idle", "locked")


class TabLifecycleManager:
    """
    Single owner of the group index, suspension state, recent tabs and settings.

    Lifecycle: ``await init()`` loads durable state and reconciles it with the
    open tabs, ``await run()`` consumes host events until ``stop()``, and
    ``await teardown()`` cancels timers and flushes everything.

    Handlers re-read host state after every await instead of trusting values
    captured earlier, and every mutation is idempotent when replayed.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        storage: PersistenceGateway,
        settings: Optional[Settings] = None,
        snapshot_interval: float = SNAPSHOT_INTERVAL,
        sync_interval: float = SYNC_INTERVAL,
        restore_on_startup: bool = RESTORE_ON_STARTUP,
        recent_limit: int = RECENT_TABS_LIMIT,
        reserved_schemes: Sequence[str] = RESERVED_SCHEMES,
    ):
        self.directory = directory
        self.storage = storage
        self.settings = settings or Settings()
        self.snapshot_interval = snapshot_interval
        self.sync_interval = sync_interval
        self.restore_on_startup = restore_on_startup

        self.channel = EventChannel()
        self.store = StateStore(storage)
        self.groups = GroupIndex()
        self.scheduler = SuspensionScheduler(
            directory,
            self.store,
            idle_timeout=self.settings.idle_timeout_seconds,
            max_suspended=self.settings.max_suspended,
            enabled=self.settings.auto_suspend,
            reserved_schemes=reserved_schemes,
            on_missing=self.prune_tab,
        )
        self.sessions = SessionStore(directory, self.store, self.groups)
        self.transfer = TabTransfer(directory, self.store, self.groups)
        self.sync = SyncReconciler(
            directory, self.store, self.groups, self.transfer,
            enabled=self.settings.sync_enabled,
        )
        self.recent = RecentTabs(self.store, limit=recent_limit)

        self._tasks: List[asyncio.Task] = []
        self._initialized = False

    # Lifecycle

    async def init(self) -> None:
        """Load durable state, reconcile it with the open tabs and start periodic work."""
        if self._initialized:
            return

        data = await self.store.load()
        self.settings = self.settings.updated(data.get(SETTINGS))
        self._apply_settings()

        for key, refs in parse_groups(data.get(TAB_GROUPS)).items():
            for ref in refs:
                self.groups.assign(ref, key)
        self.scheduler.load(parse_refs(data.get(SUSPENDED_TABS)))
        self.recent.load(parse_recent(data.get(RECENT_TABS)))

        # Subscribe before listing so no change between the listing and the first event is lost
        self.directory.attach(self.channel)
        self.storage.attach(self.channel)

        # Refs from a previous browser run are dead; drop them and group what is open now
        tabs = await self.directory.list_tabs()
        live = [tab.id for tab in tabs]
        stale = self.groups.prune(live)
        self.scheduler.prune(live)
        if stale:
            logger.info("Pruned %d stale tab ref(s) from groups", len(stale))
        if self.settings.auto_group:
            for tab in tabs:
                key = extract_group_key(tab.url)
                if key and tab.id not in self.groups:
                    self.groups.assign(tab.id, key)
        await self.store.save_groups(self.groups)
        await self.store.save_suspended(self.scheduler.discarded())
        self._initialized = True

        if self.restore_on_startup:
            await self.sessions.restore()

        if self.sync.enabled:
            await self.sync_now()

        self._start_periodic("session-snapshot", self.snapshot_interval, self.sessions.capture)
        self._start_periodic("sync", self.sync_interval, self._periodic_sync)
        logger.info(
            "Tab manager ready: %d tab(s), %d group(s), sync %s",
            len(tabs), len(self.groups), "on" if self.sync.enabled else "off",
        )

    async def run(self) -> None:
        """Consume host events in arrival order until the channel is closed."""
        while True:
            event = await self.channel.get()
            if event is None:
                break
            await self.handle(event)

    def stop(self) -> None:
        self.channel.close()

    async def teardown(self) -> None:
        """Cancel timers and periodic work, capture a final session and flush state."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        self.scheduler.cancel_pending()
        self.directory.detach()
        self.storage.detach()

        if self._initialized:
            try:
                await self.sessions.capture()
            except TabManagerError as e:
                logger.warning("Final session capture failed: %s", e)
            await self.store.save_groups(self.groups)
            await self.store.save_suspended(self.scheduler.discarded())
            if self.store.has_pending_writes:
                logger.warning("Shutting down with unsaved state")
        self.channel.close()
        self._initialized = False

    # Event handling

    async def handle(self, event: HostEvent) -> None:
        """Dispatch one host event; failures are logged, never raised."""
        try:
            if isinstance(event, TabChanged):
                await self.on_tab_changed(event.ref, event.changes)
            elif isinstance(event, TabRemoved):
                await self.on_tab_removed(event.ref)
            elif isinstance(event, TabActivated):
                await self.on_tab_activated(event.ref)
            elif isinstance(event, IdleStateChanged):
                await self.on_idle_state_changed(event.state)
            elif isinstance(event, StorageChanged):
                await self.on_storage_changed(event.area, event.keys)
            else:
                logger.debug("Ignoring unknown event %r", event)
        except TabManagerError as e:
            logger.warning("Handling %s failed: %s", type(event).__name__, e)
        except Exception:
            logger.exception("Unexpected error handling %s", type(event).__name__)

    async def on_tab_changed(self, ref: TabRef, changes: Dict[str, Any]) -> None:
        if "url" in changes and self.settings.auto_group:
            key = extract_group_key(changes["url"])
            changed = self.groups.assign(ref, key) if key else self.groups.remove(ref)
            if changed:
                await self.store.save_groups(self.groups)
                await self.sync.push()

        # A tab that became protected must not stay scheduled
        if (changes.get("pinned") or changes.get("audible")) and self.scheduler.state(ref) == PENDING:
            await self.scheduler.activate(ref)

    async def on_tab_removed(self, ref: TabRef) -> None:
        await self.prune_tab(ref)

    async def on_tab_activated(self, ref: TabRef) -> None:
        await self.scheduler.activate(ref)
        try:
            tab = await self.directory.get_tab(ref)
        except TransientResourceError:
            await self.prune_tab(ref)
            return
        await self.recent.record(tab)

    async def on_idle_state_changed(self, state: IdleState) -> None:
        if state in IDLE_STATES:
            await self.scheduler.on_idle()
        else:
            self.scheduler.on_active()

    async def on_storage_changed(self, area: str, keys: Sequence[str]) -> None:
        if area == LOCAL_AREA and SETTINGS in keys:
            self.settings = await self.store.load_settings(self.settings)
            self._apply_settings()
        elif area == SYNC_AREA and (SYNC_GROUPS in keys or SYNC_URLS in keys):
            result = await self.sync.pull(skip_unchanged=True)
            if result.changed:
                await self.sync.push()

    async def prune_tab(self, ref: TabRef) -> None:
        """Remove a tab that no longer exists from every index."""
        changed = self.groups.remove(ref)
        await self.scheduler.forget(ref)
        if changed:
            await self.store.save_groups(self.groups)
            await self.sync.push()

    # Operations exposed at the messaging boundary

    async def export_tabs(self) -> Dict[str, Any]:
        return await self.transfer.export()

    async def import_tabs(self, data: Any) -> ImportResult:
        result = await self.transfer.import_payload(data)
        if result.created:
            await self.sync.push()
        return result

    async def save_session(self) -> List[SessionEntry]:
        return await self.sessions.capture()

    async def restore_session(self) -> RestoreResult:
        result = await self.sessions.restore()
        if result.created:
            await self.sync.push()
        return result

    async def switch_to_tab(self, ref: TabRef) -> None:
        """Bring a tab to the front and focus its window."""
        try:
            tab = await self.directory.get_tab(ref)
            await self.directory.activate_tab(ref)
        except TransientResourceError:
            await self.prune_tab(ref)
            raise
        if tab.window_id is not None:
            await self.directory.focus_window(tab.window_id)

    async def update_settings(self, data: Dict[str, Any]) -> Settings:
        was_syncing = self.sync.enabled
        self.settings = self.settings.updated(data)
        self._apply_settings()
        await self.store.save_settings(self.settings)
        await self.store.save_suspended(self.scheduler.discarded())
        if self.sync.enabled and not was_syncing:
            await self.sync_now()
        return self.settings

    async def sync_now(self) -> None:
        """Pull remote changes, then push the merged state."""
        await self.sync.pull()
        await self.sync.push()

    def tab_groups(self) -> Dict[str, List[TabRef]]:
        return self.groups.mapping()

    # Internals

    def _apply_settings(self) -> None:
        self.scheduler.configure(
            idle_timeout=self.settings.idle_timeout_seconds,
            max_suspended=self.settings.max_suspended,
            enabled=self.settings.auto_suspend,
        )
        if self.settings.sync_enabled and not self.sync.enabled:
            self.sync.forget_remote()
        self.sync.enabled = self.settings.sync_enabled

    async def _periodic_sync(self) -> None:
        if self.sync.enabled:
            await self.sync_now()

    def _start_periodic(self, name: str, interval: float, func: Callable[[], Awaitable[Any]]) -> None:
        self._tasks.append(asyncio.get_running_loop().create_task(self._every(name, interval, func)))

    async def _every(self, name: str, interval: float, func: Callable[[], Awaitable[Any]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await func()
            except TabManagerError as e:
                logger.warning("Periodic %s failed: %s", name, e)
            except Exception:
                logger.exception("Unexpected error in periodic %s", name)
