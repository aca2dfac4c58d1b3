"""Command execution layer for messages from the UI."""

from .base import Command
from .executor import CommandExecutor
from .export_tabs import ExportTabsCommand
from .import_tabs import ImportTabsCommand
from .session import SaveSessionCommand, RestoreSessionCommand
from .switch_tab import SwitchTabCommand
from .tab_groups import GetTabGroupsCommand
from .recent_tabs import GetRecentTabsCommand, ClearRecentTabsCommand
from .settings import GetSettingsCommand, UpdateSettingsCommand

__all__ = [
    "Command",
    "CommandExecutor",
    "ExportTabsCommand",
    "ImportTabsCommand",
    "SaveSessionCommand",
    "RestoreSessionCommand",
    "SwitchTabCommand",
    "GetTabGroupsCommand",
    "GetRecentTabsCommand",
    "ClearRecentTabsCommand",
    "GetSettingsCommand",
    "UpdateSettingsCommand",
]
