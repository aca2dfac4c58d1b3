"""Commands to save and restore the whole session."""

from typing import Any, Dict
from .base import Command, ok


class SaveSessionCommand(Command):
    """Captures the open tabs as the saved session."""

    message_type = "SAVE_SESSION"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        entries = await self.manager.save_session()
        return ok({"count": len(entries)})


class RestoreSessionCommand(Command):
    """Re-opens the saved session next to the tabs already open."""

    message_type = "RESTORE_SESSION"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.manager.restore_session()
        return ok(result.to_dict())
