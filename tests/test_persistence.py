import asyncio

from tab_manager.exceptions import PersistenceError
from tab_manager.group_index import GroupIndex
from tab_manager.host import MemoryStorage
from tab_manager.models import Settings
from tab_manager.persistence import (
    SETTINGS,
    SUSPENDED_TABS,
    TAB_GROUPS,
    StateStore,
    parse_groups,
    parse_recent,
    parse_refs,
    parse_session,
)


class _UnreadableStorage(MemoryStorage):
    async def get_local(self, keys):
        raise PersistenceError("disk on fire")


def test_failed_write_is_retried_with_next_write(storage, caplog):
    store = StateStore(storage)
    storage.fail_writes = True

    async def scenario():
        assert not await store.save_groups(GroupIndex({"a.com": [1]}))
        assert store.has_pending_writes
        storage.fail_writes = False
        assert await store.save_suspended([7])

    asyncio.run(scenario())
    assert not store.has_pending_writes
    assert storage.local[TAB_GROUPS] == {"a.com": [1]}
    assert storage.local[SUSPENDED_TABS] == [7]
    assert "will retry" in caplog.text


def test_newer_value_wins_over_dirty_one(storage):
    store = StateStore(storage)

    async def scenario():
        storage.fail_writes = True
        await store.save_groups(GroupIndex({"a.com": [1]}))
        storage.fail_writes = False
        await store.save_groups(GroupIndex({"b.com": [2]}))

    asyncio.run(scenario())
    assert storage.local[TAB_GROUPS] == {"b.com": [2]}


def test_flush_without_pending_writes_does_not_touch_storage(storage):
    assert asyncio.run(StateStore(storage).flush())
    assert storage.local_writes == []


def test_unreadable_store_loads_as_empty():
    store = StateStore(_UnreadableStorage())
    assert asyncio.run(store.load()) == {}
    assert asyncio.run(store.load_session()) == []
    defaults = Settings(max_suspended=3)
    assert asyncio.run(store.load_settings(defaults)) == defaults


def test_load_settings_ignores_unknown_and_mistyped_keys():
    storage = MemoryStorage(local={SETTINGS: {
        "autoSuspend": False,
        "maxSuspended": "lots",
        "idleTimeoutMinutes": 5,
        "showFavicons": True,
    }})
    settings = asyncio.run(StateStore(storage).load_settings(Settings(max_suspended=9)))
    assert settings.auto_suspend is False
    assert settings.max_suspended == 9
    assert settings.idle_timeout_minutes == 5.0


def test_parsers_drop_malformed_values():
    assert parse_groups({"a.com": [1, True, "x", 2], "b.com": [], 3: [4], "c.com": "5"}) == {"a.com": [1, 2]}
    assert parse_groups(["a.com"]) == {}
    assert parse_refs([1, False, 2.5, 3]) == [1, 3]
    assert parse_refs(None) == []
    assert [e.url for e in parse_session([{"url": "https://a.com/"}, {"title": "x"}, "junk"])] == ["https://a.com/"]
    assert [t.id for t in parse_recent([{"id": 4, "url": "https://a.com/"}, {"url": "no id"}])] == [4]
