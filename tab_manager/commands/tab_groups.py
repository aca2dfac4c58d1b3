"""Command to read the current tab groups."""

from typing import Any, Dict
from .base import Command, ok


class GetTabGroupsCommand(Command):
    message_type = "GET_TAB_GROUPS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(self.manager.tab_groups())
