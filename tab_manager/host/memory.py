"""In-process host simulation: a browser tab set and a key-value store."""

import copy
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set

from .base import LOCAL_AREA, SYNC_AREA, PersistenceGateway, ResourceDirectory
from ..events import IdleStateChanged, StorageChanged, TabActivated, TabChanged, TabRemoved
from ..exceptions import HostError, PersistenceError, TransientResourceError
from ..models import IdleState, TabRef, TabSnapshot


class InMemoryBrowser(ResourceDirectory):
    """
    Deterministic browser stand-in.

    The async methods implement the collaborator contract; the plain methods
    (open_tab, navigate, close_tab, ...) simulate user/host activity and
    publish the same events a real host would.
    """

    def __init__(self, first_id: int = 1):
        super().__init__()
        self._tabs: Dict[TabRef, TabSnapshot] = {}
        self._next_id = first_id
        self.focused_window: Optional[int] = None
        self.idle_state: IdleState = "active"

        # Failure injection
        self.fail_urls: Set[str] = set()
        self.fail_discard: Set[TabRef] = set()

        # Call log for assertions
        self.discard_calls: List[TabRef] = []
        self.created: List[TabSnapshot] = []

    # Collaborator contract

    async def list_tabs(self, active: Optional[bool] = None, window_id: Optional[int] = None) -> List[TabSnapshot]:
        tabs = []
        for tab in self._tabs.values():
            if active is not None and tab.active != active:
                continue
            if window_id is not None and tab.window_id != window_id:
                continue
            tabs.append(replace(tab))
        return tabs

    async def get_tab(self, ref: TabRef) -> TabSnapshot:
        return replace(self._require(ref))

    async def create_tab(self, url: str, pinned: bool = False, active: bool = False) -> TabSnapshot:
        if url in self.fail_urls:
            raise HostError(f"Host refused to open {url}")
        ref = self.open_tab(url, pinned=pinned, active=active)
        tab = replace(self._tabs[ref])
        self.created.append(tab)
        return tab

    async def discard_tab(self, ref: TabRef) -> None:
        self.discard_calls.append(ref)
        tab = self._require(ref)
        if ref in self.fail_discard:
            raise HostError(f"Host refused to discard tab {ref}")
        if tab.active:
            raise HostError(f"Cannot discard active tab {ref}")
        if not tab.discarded:
            tab.discarded = True
            self._publish(TabChanged(ref, {"discarded": True}))

    async def activate_tab(self, ref: TabRef) -> None:
        self.user_activate(ref)

    async def focus_window(self, window_id: int) -> None:
        self.focused_window = window_id

    # Simulation helpers

    def open_tab(
        self,
        url: str,
        title: str = "",
        pinned: bool = False,
        audible: bool = False,
        active: bool = False,
        window_id: int = 1,
    ) -> TabRef:
        ref = self._next_id
        self._next_id += 1
        if active:
            self._deactivate_window(window_id)
        self._tabs[ref] = TabSnapshot(
            id=ref,
            url=url,
            title=title or url,
            pinned=pinned,
            audible=audible,
            active=active,
            window_id=window_id,
        )
        self._publish(TabChanged(ref, {"url": url}))
        if active:
            self._publish(TabActivated(ref, window_id))
        return ref

    def navigate(self, ref: TabRef, url: str, title: Optional[str] = None) -> None:
        tab = self._require(ref)
        tab.url = url
        tab.title = title or url
        tab.discarded = False
        self._publish(TabChanged(ref, {"url": url}))

    def set_pinned(self, ref: TabRef, pinned: bool) -> None:
        self._require(ref).pinned = pinned
        self._publish(TabChanged(ref, {"pinned": pinned}))

    def set_audible(self, ref: TabRef, audible: bool) -> None:
        self._require(ref).audible = audible
        self._publish(TabChanged(ref, {"audible": audible}))

    def close_tab(self, ref: TabRef) -> None:
        self._require(ref)
        del self._tabs[ref]
        self._publish(TabRemoved(ref))

    def user_activate(self, ref: TabRef) -> None:
        tab = self._require(ref)
        self._deactivate_window(tab.window_id)
        tab.active = True
        tab.discarded = False
        self._publish(TabActivated(ref, tab.window_id))

    def set_idle(self, state: IdleState) -> None:
        self.idle_state = state
        self._publish(IdleStateChanged(state))

    def has_tab(self, ref: TabRef) -> bool:
        return ref in self._tabs

    def urls(self) -> List[str]:
        return [tab.url for tab in self._tabs.values()]

    def _require(self, ref: TabRef) -> TabSnapshot:
        tab = self._tabs.get(ref)
        if tab is None:
            raise TransientResourceError(ref)
        return tab

    def _deactivate_window(self, window_id: Optional[int]) -> None:
        for tab in self._tabs.values():
            if tab.window_id == window_id:
                tab.active = False


class MemoryStorage(PersistenceGateway):
    """Key-value store held in process memory, with write-failure injection."""

    def __init__(self, local: Optional[Dict[str, Any]] = None, synced: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.local: Dict[str, Any] = copy.deepcopy(local or {})
        self.synced: Dict[str, Any] = copy.deepcopy(synced or {})
        self.fail_writes = False
        self.local_writes: List[Dict[str, Any]] = []
        self.synced_writes: List[Dict[str, Any]] = []

    async def get_local(self, keys: Iterable[str]) -> Dict[str, Any]:
        return self._read(self.local, keys)

    async def set_local(self, values: Dict[str, Any]) -> None:
        self._write(self.local, values, LOCAL_AREA)
        self.local_writes.append(copy.deepcopy(values))

    async def get_synced(self, keys: Iterable[str]) -> Dict[str, Any]:
        return self._read(self.synced, keys)

    async def set_synced(self, values: Dict[str, Any]) -> None:
        self._write(self.synced, values, SYNC_AREA)
        self.synced_writes.append(copy.deepcopy(values))

    def write_remote(self, values: Dict[str, Any]) -> None:
        """Simulate another device writing to the synchronized area."""
        self.synced.update(copy.deepcopy(values))
        self._publish(StorageChanged(SYNC_AREA, tuple(values)))

    def _read(self, area: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
        return {key: copy.deepcopy(area[key]) for key in keys if key in area}

    def _write(self, area: Dict[str, Any], values: Dict[str, Any], name: str) -> None:
        if self.fail_writes:
            raise PersistenceError(f"Simulated {name} write failure")
        area.update(copy.deepcopy(values))
        self._publish(StorageChanged(name, tuple(values)))
