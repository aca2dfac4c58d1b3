"""Commands for the recently activated tabs list."""

from typing import Any, Dict
from .base import Command, ok


class GetRecentTabsCommand(Command):
    message_type = "GET_RECENT_TABS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok([tab.to_dict() for tab in self.manager.recent.tabs()])


class ClearRecentTabsCommand(Command):
    message_type = "CLEAR_RECENT_TABS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        await self.manager.recent.clear()
        return ok()
