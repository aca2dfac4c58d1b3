"""Main entry point for the tab manager."""

import asyncio
import logging
import signal
import sys

from .api_server import start_api_server
from .commands import CommandExecutor
from .config import (
    API_PORT, BROWSER, DATA_PATH, SYNC_PATH, POLL_INTERVAL, IDLE_THRESHOLD,
    SNAPSHOT_INTERVAL, SYNC_INTERVAL, RECENT_TABS_LIMIT, RESTORE_ON_STARTUP,
    RESERVED_SCHEMES, LOG_LEVEL,
)
from .host import ChromeDirectory, JsonFileStorage
from .manager import TabLifecycleManager


def print_help(manager: TabLifecycleManager):
    """Print welcome message and current settings."""
    settings = manager.settings
    print("=" * 60)
    print("Tab Manager")
    print("=" * 60)
    print(f"\nBrowser: {BROWSER}")
    print(f"State file: {DATA_PATH}")
    print(f"Synced file: {SYNC_PATH} (sync {'on' if settings.sync_enabled else 'off'})")
    print(f"\nAuto-suspend: {'on' if settings.auto_suspend else 'off'}"
          f" after {settings.idle_timeout_minutes:g} min idle, keeping at most {settings.max_suspended}")
    print(f"Auto-group by domain: {'on' if settings.auto_group else 'off'}")
    print(f"\nLocal API: http://127.0.0.1:{API_PORT}/message")
    print("Press Ctrl+C to stop.")
    print("=" * 60)


async def run() -> None:
    """Build the manager against Chrome and the JSON files, then serve until signalled."""
    loop = asyncio.get_running_loop()
    manager = TabLifecycleManager(
        ChromeDirectory(BROWSER, poll_interval=POLL_INTERVAL, idle_threshold=IDLE_THRESHOLD),
        JsonFileStorage(DATA_PATH, SYNC_PATH, poll_interval=POLL_INTERVAL),
        snapshot_interval=SNAPSHOT_INTERVAL,
        sync_interval=SYNC_INTERVAL,
        restore_on_startup=RESTORE_ON_STARTUP,
        recent_limit=RECENT_TABS_LIMIT,
        reserved_schemes=RESERVED_SCHEMES,
    )

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, manager.stop)

    try:
        await manager.init()
        print_help(manager)
        try:
            start_api_server(CommandExecutor(manager), loop, port=API_PORT)
        except OSError as e:
            print(f"Warning: Could not start local API server: {e}\n")
        await manager.run()
    finally:
        print("\nShutting down...")
        await manager.teardown()


def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
