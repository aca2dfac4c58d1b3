"""Idle suspension of background tabs with per-tab timers and a capacity bound."""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set
from urllib.parse import urlparse

from .config import RESERVED_SCHEMES
from .exceptions import HostError, TransientResourceError
from .host.base import ResourceDirectory
from .models import TabRef, TabSnapshot
from .persistence import StateStore

logger = logging.getLogger(__name__)

ACTIVE = "active"
PENDING = "pending"
DISCARDED = "discarded"

TimerCallback = Callable[[TabRef], Awaitable[None]]


def is_protected(tab: TabSnapshot, reserved_schemes: Sequence[str] = RESERVED_SCHEMES) -> bool:
    """Pinned, audible and internal-scheme tabs are never suspended."""
    if tab.pinned or tab.audible:
        return True
    try:
        scheme = urlparse(tab.url or "").scheme.lower()
    except ValueError:
        return False
    return scheme in reserved_schemes


class TimerArena:
    """
    One armed timer per tab ref.

    Arming a ref that already has a timer cancels the old one first. A timer
    leaves the arena as it fires, so cancelling during its callback is a no-op.
    """

    def __init__(self):
        self._timers: Dict[TabRef, asyncio.Task] = {}

    def arm(self, ref: TabRef, delay: float, callback: TimerCallback) -> asyncio.Task:
        self.cancel(ref)
        task = asyncio.get_running_loop().create_task(self._run(ref, delay, callback))
        self._timers[ref] = task
        return task

    def cancel(self, ref: TabRef) -> bool:
        task = self._timers.pop(ref, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> List[TabRef]:
        refs = list(self._timers)
        for ref in refs:
            self.cancel(ref)
        return refs

    def is_armed(self, ref: TabRef) -> bool:
        return ref in self._timers

    def armed(self) -> List[TabRef]:
        return list(self._timers)

    def __len__(self) -> int:
        return len(self._timers)

    async def _run(self, ref: TabRef, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)
        if self._timers.get(ref) is asyncio.current_task():
            del self._timers[ref]
        try:
            await callback(ref)
        except Exception:
            logger.exception("Suspension timer for tab %s failed", ref)


class SuspensionScheduler:
    """
    Moves tabs Active -> Pending -> Discarded.

    Pending tabs hold an armed timer; discarded tabs are tracked oldest-first
    and the bookkeeping set is trimmed to ``max_suspended``. Trimming never
    restores a tab's content.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        store: StateStore,
        idle_timeout: float,
        max_suspended: int,
        enabled: bool = True,
        reserved_schemes: Sequence[str] = RESERVED_SCHEMES,
        on_missing: Optional[Callable[[TabRef], Awaitable[None]]] = None,
    ):
        self.directory = directory
        self.store = store
        self.idle_timeout = idle_timeout
        self.max_suspended = max_suspended
        self.enabled = enabled
        self.reserved_schemes = tuple(reserved_schemes)
        self.on_missing = on_missing

        self.timers = TimerArena()
        self._pending: Set[TabRef] = set()
        # ref -> discard time, oldest first
        self._discarded: "OrderedDict[TabRef, float]" = OrderedDict()

    def configure(self, idle_timeout: float, max_suspended: int, enabled: bool) -> None:
        """
        Apply new settings.

        Already-armed timers keep their original deadline, unless suspension
        was switched off, in which case they are cancelled.
        """
        was_enabled = self.enabled
        self.idle_timeout = idle_timeout
        self.max_suspended = max_suspended
        self.enabled = enabled
        if was_enabled and not enabled:
            cancelled = self.cancel_pending()
            if cancelled:
                logger.debug("Auto-suspend disabled, cancelled %d suspension timer(s)", len(cancelled))
        if self._trim():
            logger.debug("Suspension capacity lowered to %d", max_suspended)

    def state(self, ref: TabRef) -> str:
        if ref in self._pending:
            return PENDING
        if ref in self._discarded:
            return DISCARDED
        return ACTIVE

    def pending(self) -> List[TabRef]:
        return sorted(self._pending)

    def discarded(self) -> List[TabRef]:
        return list(self._discarded)

    def load(self, refs: Iterable[TabRef]) -> None:
        """Restore discarded bookkeeping (oldest first) from durable state."""
        for ref in refs:
            if ref not in self._discarded:
                self._discarded[ref] = 0.0
        self._trim()

    def prune(self, valid_refs: Iterable[TabRef]) -> List[TabRef]:
        valid = set(valid_refs)
        stale = [ref for ref in list(self._pending) + list(self._discarded) if ref not in valid]
        for ref in stale:
            self._release(ref)
        return stale

    async def on_idle(self) -> List[TabRef]:
        """
        Arm a timer for every inactive, unprotected tab not already tracked.

        Returns:
            Refs that entered Pending
        """
        if not self.enabled:
            return []
        if not self.directory.supports_discard:
            logger.debug("Host cannot discard tabs; not scheduling any")
            return []

        tabs = await self.directory.list_tabs(active=False)
        armed = []
        for tab in tabs:
            ref = tab.id
            if ref in self._pending or ref in self._discarded:
                continue
            if tab.active or tab.discarded or is_protected(tab, self.reserved_schemes):
                continue
            self._pending.add(ref)
            self.timers.arm(ref, self.idle_timeout, self._on_timer)
            armed.append(ref)

        if armed:
            logger.info("Scheduled %d idle tab(s) for suspension", len(armed))
        return armed

    def on_active(self) -> List[TabRef]:
        """Cancel every armed timer; discarded tabs stay discarded."""
        cancelled = self.cancel_pending()
        if cancelled:
            logger.debug("User active again, cancelled %d suspension timer(s)", len(cancelled))
        return cancelled

    def cancel_pending(self) -> List[TabRef]:
        cancelled = self.timers.cancel_all()
        self._pending.clear()
        return cancelled

    async def activate(self, ref: TabRef) -> str:
        """
        Return ``ref`` to Active, whatever its state.

        Returns:
            The state the tab was in before
        """
        previous = self.state(ref)
        self._release(ref)
        if previous == DISCARDED:
            await self.store.save_suspended(self.discarded())
        return previous

    async def forget(self, ref: TabRef) -> str:
        """Drop all bookkeeping for a closed tab."""
        return await self.activate(ref)

    def _release(self, ref: TabRef) -> None:
        self.timers.cancel(ref)
        self._pending.discard(ref)
        self._discarded.pop(ref, None)

    async def _on_timer(self, ref: TabRef) -> None:
        if ref not in self._pending:
            return
        if not self.enabled:
            self._pending.discard(ref)
            return

        # Re-read the tab: it may have been activated, pinned or closed meanwhile
        try:
            tab = await self.directory.get_tab(ref)
        except TransientResourceError:
            await self._lost(ref)
            return

        if ref not in self._pending:
            return
        if tab.active or is_protected(tab, self.reserved_schemes):
            self._pending.discard(ref)
            return

        try:
            await self.directory.discard_tab(ref)
        except TransientResourceError:
            await self._lost(ref)
            return
        except HostError as e:
            logger.warning("Could not discard tab %s: %s", ref, e)
            self._pending.discard(ref)
            return

        if ref not in self._pending:
            # Activated while the discard was in flight
            return

        self._pending.discard(ref)
        self._discarded[ref] = time.time()
        self._trim()
        logger.info("Suspended tab %s (%s)", ref, tab.url)
        await self.store.save_suspended(self.discarded())

    async def _lost(self, ref: TabRef) -> None:
        logger.debug("Tab %s disappeared before suspension", ref)
        self._release(ref)
        if self.on_missing is not None:
            await self.on_missing(ref)

    def _trim(self) -> List[TabRef]:
        dropped = []
        while len(self._discarded) > self.max_suspended:
            ref, _ = self._discarded.popitem(last=False)
            dropped.append(ref)
        if dropped:
            logger.debug("Dropped %s from suspension bookkeeping (limit %d)", dropped, self.max_suspended)
        return dropped
