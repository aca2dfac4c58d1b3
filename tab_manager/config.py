"""Configuration for the tab manager."""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Configuration class for the tab manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Suspension defaults (overridden by persisted user settings)
        self.auto_suspend = _env_bool("TAB_MANAGER_AUTO_SUSPEND", "true")
        self.idle_timeout_minutes = float(os.getenv("TAB_MANAGER_IDLE_TIMEOUT_MINUTES", "30"))
        self.max_suspended_tabs = int(os.getenv("TAB_MANAGER_MAX_SUSPENDED_TABS", "50"))

        # Grouping and sync defaults
        self.auto_group = _env_bool("TAB_MANAGER_AUTO_GROUP", "true")
        self.sync_enabled = _env_bool("TAB_MANAGER_SYNC_ENABLED", "false")

        # Periodic work (seconds)
        self.snapshot_interval = float(os.getenv("TAB_MANAGER_SNAPSHOT_INTERVAL", "300"))
        self.sync_interval = float(os.getenv("TAB_MANAGER_SYNC_INTERVAL", "300"))

        # Recent tabs are kept most-recent-first, bounded
        self.recent_tabs_limit = int(os.getenv("TAB_MANAGER_RECENT_TABS_LIMIT", "10"))

        # Re-open the saved session when the manager starts (additive, never dedupes)
        self.restore_on_startup = _env_bool("TAB_MANAGER_RESTORE_ON_STARTUP", "false")

        # Tabs on these URL schemes are never suspended
        schemes = os.getenv(
            "TAB_MANAGER_RESERVED_SCHEMES",
            "chrome,chrome-extension,chrome-search,chrome-untrusted,devtools,edge,about,view-source",
        )
        self.reserved_schemes = tuple(s.strip().lower() for s in schemes.split(",") if s.strip())

        # Durable storage: local state file and the synced file (point it at a shared folder)
        self.data_path = os.getenv("TAB_MANAGER_DATA_PATH", os.path.expanduser("~/.tab_manager_data.json"))
        self.sync_path = os.getenv("TAB_MANAGER_SYNC_PATH", os.path.expanduser("~/.tab_manager_sync.json"))

        # Host browser driven through AppleScript
        self.browser = os.getenv("TAB_MANAGER_BROWSER", "Google Chrome")
        self.poll_interval = float(os.getenv("TAB_MANAGER_POLL_INTERVAL", "1.0"))
        # Seconds without keyboard/mouse input before the system counts as idle
        self.idle_threshold = float(os.getenv("TAB_MANAGER_IDLE_THRESHOLD", "60"))

        # Local API (for the popup/panel UI)
        self.api_port = int(os.getenv("TAB_MANAGER_API_PORT", "8771"))

        self.log_level = os.getenv("TAB_MANAGER_LOG_LEVEL", "INFO").upper()

        # Validate configuration
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.idle_timeout_minutes <= 0:
            raise ValueError(f"Idle timeout must be positive, got {self.idle_timeout_minutes}")

        if self.max_suspended_tabs < 1:
            raise ValueError(f"Max suspended tabs must be at least 1, got {self.max_suspended_tabs}")

        for name in ("snapshot_interval", "sync_interval", "poll_interval", "idle_threshold"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.recent_tabs_limit < 1:
            raise ValueError(f"Recent tabs limit must be at least 1, got {self.recent_tabs_limit}")

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_levels:
            raise ValueError(
                f"Invalid log level '{self.log_level}'. "
                f"Must be one of: {', '.join(valid_levels)}"
            )


# Create a global config instance
_config = Config()

# Expose configuration values as module-level variables
AUTO_SUSPEND = _config.auto_suspend
IDLE_TIMEOUT_MINUTES = _config.idle_timeout_minutes
MAX_SUSPENDED_TABS = _config.max_suspended_tabs
AUTO_GROUP = _config.auto_group
SYNC_ENABLED = _config.sync_enabled
SNAPSHOT_INTERVAL = _config.snapshot_interval
SYNC_INTERVAL = _config.sync_interval
RECENT_TABS_LIMIT = _config.recent_tabs_limit
RESTORE_ON_STARTUP = _config.restore_on_startup
RESERVED_SCHEMES = _config.reserved_schemes
DATA_PATH = _config.data_path
SYNC_PATH = _config.sync_path
BROWSER = _config.browser
POLL_INTERVAL = _config.poll_interval
IDLE_THRESHOLD = _config.idle_threshold
API_PORT = _config.api_port
LOG_LEVEL = _config.log_level

__all__ = [
    "Config",
    "AUTO_SUSPEND",
    "IDLE_TIMEOUT_MINUTES",
    "MAX_SUSPENDED_TABS",
    "AUTO_GROUP",
    "SYNC_ENABLED",
    "SNAPSHOT_INTERVAL",
    "SYNC_INTERVAL",
    "RECENT_TABS_LIMIT",
    "RESTORE_ON_STARTUP",
    "RESERVED_SCHEMES",
    "DATA_PATH",
    "SYNC_PATH",
    "BROWSER",
    "POLL_INTERVAL",
    "IDLE_THRESHOLD",
    "API_PORT",
    "LOG_LEVEL",
]
