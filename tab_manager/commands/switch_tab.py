"""Command to switch to a tab."""

from typing import Any, Dict
from .base import Command, error, ok
from ..exceptions import TransientResourceError


class SwitchTabCommand(Command):
    """Activates a tab and focuses its window."""

    message_type = "SWITCH_TAB"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        data = message.get("data") or {}
        tab_id = data.get("tabId") if isinstance(data, dict) else None
        if not isinstance(tab_id, int) or isinstance(tab_id, bool):
            return error("tabId must be an integer")

        try:
            await self.manager.switch_to_tab(tab_id)
        except TransientResourceError:
            return error(f"Tab {tab_id} is no longer open")
        return ok()
