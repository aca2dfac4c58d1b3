"""Command to export tab groups with their URLs."""

from typing import Any, Dict
from .base import Command, ok


class ExportTabsCommand(Command):
    """Returns ``{tabGroups, urls, timestamp}`` for the UI to save as a file."""

    message_type = "EXPORT_TABS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(await self.manager.export_tabs())
