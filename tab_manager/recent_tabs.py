"""Most-recently-activated tabs."""

from typing import List, Optional

from .config import RECENT_TABS_LIMIT
from .models import TabSnapshot
from .persistence import StateStore


class RecentTabs:
    """Bounded most-recent-first list of activated tab snapshots, one entry per tab."""

    def __init__(self, store: StateStore, limit: int = RECENT_TABS_LIMIT, tabs: Optional[List[TabSnapshot]] = None):
        self.store = store
        self.limit = limit
        self._tabs: List[TabSnapshot] = list(tabs or [])[:limit]

    async def record(self, tab: TabSnapshot) -> None:
        # Remove if already present (move to front)
        self._tabs = [tab] + [t for t in self._tabs if t.id != tab.id]
        self._tabs = self._tabs[:self.limit]
        await self.store.save_recent(self._tabs)

    async def clear(self) -> None:
        self._tabs = []
        await self.store.save_recent(self._tabs)

    def load(self, tabs: List[TabSnapshot]) -> None:
        self._tabs = list(tabs)[:self.limit]

    def tabs(self) -> List[TabSnapshot]:
        return list(self._tabs)
