"""Commands to read and change user settings."""

from typing import Any, Dict
from .base import Command, error, ok


class GetSettingsCommand(Command):
    message_type = "GET_SETTINGS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(self.manager.settings.to_dict())


class UpdateSettingsCommand(Command):
    """Applies the known keys of ``data``; unknown keys are ignored."""

    message_type = "UPDATE_SETTINGS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        data = message.get("data")
        if not isinstance(data, dict):
            return error("settings must be an object")
        settings = await self.manager.update_settings(data)
        return ok(settings.to_dict())
