"""Command executor to route UI messages to the appropriate command classes."""

import logging
from typing import Any, Dict, List
from .base import Command, error
from .export_tabs import ExportTabsCommand
from .import_tabs import ImportTabsCommand
from .session import SaveSessionCommand, RestoreSessionCommand
from .switch_tab import SwitchTabCommand
from .tab_groups import GetTabGroupsCommand
from .recent_tabs import GetRecentTabsCommand, ClearRecentTabsCommand
from .settings import GetSettingsCommand, UpdateSettingsCommand
from ..exceptions import TabManagerError

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Executes commands based on incoming messages."""

    def __init__(self, manager):
        """Initialize the command executor with available commands."""
        self.commands: List[Command] = [
            ExportTabsCommand(manager),
            ImportTabsCommand(manager),
            SaveSessionCommand(manager),
            RestoreSessionCommand(manager),
            SwitchTabCommand(manager),
            GetTabGroupsCommand(manager),
            GetRecentTabsCommand(manager),
            ClearRecentTabsCommand(manager),
            GetSettingsCommand(manager),
            UpdateSettingsCommand(manager),
        ]

    async def execute(self, message: Any) -> Dict[str, Any]:
        """
        Execute the command for one message.

        Args:
            message: Dictionary with a ``type`` field and optional ``data``

        Returns:
            Response dictionary with ``success`` and ``data`` or ``error``.
            Failures are reported in the response, never raised.
        """
        if not isinstance(message, dict):
            return error("message must be an object")

        message_type = message.get("type")
        if not isinstance(message_type, str) or not message_type:
            return error("message type is required")

        for command in self.commands:
            if command.can_handle(message_type):
                try:
                    return await command.execute(message)
                except TabManagerError as e:
                    logger.warning("%s failed: %s", message_type, e)
                    return error(str(e))
                except Exception as e:
                    logger.exception("Unexpected error handling %s", message_type)
                    return error(f"{message_type} failed: {e}")

        logger.debug("Unknown message type: %s", message_type)
        return error(f"Unknown message type: {message_type}")
