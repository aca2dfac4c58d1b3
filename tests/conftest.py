"""Shared fixtures: an in-memory browser, an in-memory store and a manager factory."""

import pytest

from tab_manager.host import InMemoryBrowser, MemoryStorage
from tab_manager.manager import TabLifecycleManager
from tab_manager.models import Settings

# 0.001 minutes = 60 ms
FAST_IDLE_MINUTES = 0.001

@pytest.fixture
def browser():
    return InMemoryBrowser()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def settings():
    return Settings(
        auto_suspend=True,
        auto_group=True,
        sync_enabled=False,
        idle_timeout_minutes=FAST_IDLE_MINUTES,
        max_suspended=50,
    )


@pytest.fixture
def make_manager(browser, storage, settings):
    def _make(**kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("snapshot_interval", 3600)
        kwargs.setdefault("sync_interval", 3600)
        kwargs.setdefault("restore_on_startup", False)
        return TabLifecycleManager(browser, storage, **kwargs)
    return _make


@pytest.fixture
def drain():
    """Handle every event currently queued on the manager's channel."""
    async def _drain(manager):
        while manager.channel.pending():
            event = await manager.channel.get()
            if event is None:
                break
            await manager.handle(event)
    return _drain
