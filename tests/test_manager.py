import asyncio

import pytest

from tab_manager.exceptions import TransientResourceError
from tab_manager.persistence import (
    RECENT_TABS,
    SAVED_SESSION,
    SETTINGS,
    SUSPENDED_TABS,
    SYNC_URLS,
    TAB_GROUPS,
)
from tab_manager.suspension import ACTIVE, DISCARDED, PENDING

TIMER_WAIT = 0.25


def test_init_prunes_stale_state_and_groups_open_tabs(browser, storage, make_manager):
    storage.local[TAB_GROUPS] = {"old.com": [99], "a.com": [98]}
    storage.local[SUSPENDED_TABS] = [97]
    a = browser.open_tab("https://a.com/")
    b = browser.open_tab("https://www.b.com/x")
    browser.open_tab("about:blank")

    async def scenario():
        manager = make_manager()
        await manager.init()
        groups = manager.tab_groups()
        discarded = manager.scheduler.discarded()
        await manager.teardown()
        return groups, discarded

    groups, discarded = asyncio.run(scenario())
    assert groups == {"a.com": [a], "www.b.com": [b]}
    assert discarded == []
    assert storage.local[TAB_GROUPS] == groups
    assert storage.local[SUSPENDED_TABS] == []


def test_navigation_regroups_tabs(browser, make_manager, drain):
    async def scenario():
        manager = make_manager()
        await manager.init()

        ref = browser.open_tab("https://a.com/")
        other = browser.open_tab("https://a.com/2")
        await drain(manager)
        assert manager.tab_groups() == {"a.com": [ref, other]}

        browser.navigate(ref, "https://b.com/")
        await drain(manager)
        assert manager.tab_groups() == {"a.com": [other], "b.com": [ref]}

        browser.navigate(ref, "about:blank")
        browser.close_tab(other)
        await drain(manager)
        assert manager.tab_groups() == {}
        await manager.teardown()

    asyncio.run(scenario())


def test_auto_group_off_leaves_navigation_ungrouped(browser, settings, make_manager, drain):
    settings.auto_group = False

    async def scenario():
        manager = make_manager()
        await manager.init()
        browser.open_tab("https://a.com/")
        await drain(manager)
        assert manager.tab_groups() == {}
        await manager.teardown()

    asyncio.run(scenario())


def test_idle_suspend_then_activate(browser, make_manager, drain):
    async def scenario():
        front = browser.open_tab("https://front.com/", active=True)
        back = browser.open_tab("https://back.com/")
        manager = make_manager()
        await manager.init()

        browser.set_idle("idle")
        await drain(manager)
        assert manager.scheduler.state(back) == PENDING
        assert manager.scheduler.state(front) == ACTIVE

        await asyncio.sleep(TIMER_WAIT)
        await drain(manager)
        assert manager.scheduler.state(back) == DISCARDED

        browser.user_activate(back)
        await drain(manager)
        assert manager.scheduler.state(back) == ACTIVE
        assert [tab.id for tab in manager.recent.tabs()] == [back]
        await manager.teardown()

    asyncio.run(scenario())


def test_locked_counts_as_idle_and_active_cancels(browser, make_manager, drain):
    async def scenario():
        browser.open_tab("https://front.com/", active=True)
        back = browser.open_tab("https://back.com/")
        manager = make_manager()
        await manager.init()

        browser.set_idle("locked")
        await drain(manager)
        assert manager.scheduler.pending() == [back]

        browser.set_idle("active")
        await drain(manager)
        assert manager.scheduler.pending() == []
        await asyncio.sleep(TIMER_WAIT)
        assert browser.discard_calls == []
        await manager.teardown()

    asyncio.run(scenario())


def test_disabling_auto_suspend_stops_armed_timers(browser, make_manager, drain):
    async def scenario():
        browser.open_tab("https://front.com/", active=True)
        back = browser.open_tab("https://back.com/")
        manager = make_manager()
        await manager.init()

        browser.set_idle("idle")
        await drain(manager)
        assert manager.scheduler.pending() == [back]

        await manager.update_settings({"autoSuspend": False})
        await drain(manager)
        await asyncio.sleep(TIMER_WAIT)
        await drain(manager)
        assert browser.discard_calls == []
        assert manager.scheduler.state(back) == ACTIVE
        await manager.teardown()

    asyncio.run(scenario())


def test_tab_becoming_audible_leaves_pending(browser, make_manager, drain):
    async def scenario():
        back = browser.open_tab("https://music.com/")
        manager = make_manager()
        await manager.init()
        browser.set_idle("idle")
        await drain(manager)

        browser.set_audible(back, True)
        await drain(manager)
        assert manager.scheduler.state(back) == ACTIVE
        assert len(manager.scheduler.timers) == 0
        await manager.teardown()

    asyncio.run(scenario())


def test_removed_tab_is_pruned_everywhere(browser, storage, make_manager, drain):
    async def scenario():
        ref = browser.open_tab("https://a.com/")
        manager = make_manager()
        await manager.init()
        browser.set_idle("idle")
        await drain(manager)

        browser.close_tab(ref)
        await drain(manager)
        assert manager.tab_groups() == {}
        assert manager.scheduler.state(ref) == ACTIVE
        await asyncio.sleep(TIMER_WAIT)
        assert browser.discard_calls == []
        await manager.teardown()

    asyncio.run(scenario())
    assert storage.local[TAB_GROUPS] == {}


def test_recent_tabs_are_bounded_and_deduplicated(browser, storage, make_manager, drain):
    async def scenario():
        refs = [browser.open_tab(f"https://site{i}.com/") for i in range(5)]
        manager = make_manager(recent_limit=3)
        await manager.init()
        for ref in refs:
            browser.user_activate(ref)
        browser.user_activate(refs[2])
        await drain(manager)
        recent = [tab.id for tab in manager.recent.tabs()]
        await manager.teardown()
        return refs, recent

    refs, recent = asyncio.run(scenario())
    assert recent == [refs[2], refs[4], refs[3]]
    assert [tab["id"] for tab in storage.local[RECENT_TABS]] == recent


def test_update_settings_applies_and_persists(browser, storage, make_manager):
    async def scenario():
        manager = make_manager()
        await manager.init()
        manager.scheduler.load([1, 2, 3])
        settings = await manager.update_settings({"maxSuspended": 2, "autoSuspend": False, "bogus": 1})
        await manager.teardown()
        return manager, settings

    manager, settings = asyncio.run(scenario())
    assert settings.max_suspended == 2
    assert not manager.scheduler.enabled
    assert manager.scheduler.max_suspended == 2
    assert storage.local[SETTINGS]["maxSuspended"] == 2
    assert storage.local[SETTINGS]["autoSuspend"] is False
    assert "bogus" not in storage.local[SETTINGS]


def test_persisted_settings_override_defaults(browser, storage, make_manager):
    storage.local[SETTINGS] = {"autoGroup": False, "idleTimeoutMinutes": 10}
    browser.open_tab("https://a.com/")

    async def scenario():
        manager = make_manager()
        await manager.init()
        await manager.teardown()
        return manager

    manager = asyncio.run(scenario())
    assert manager.settings.auto_group is False
    assert manager.scheduler.idle_timeout == 600
    assert manager.tab_groups() == {}


def test_external_settings_change_is_reloaded(browser, storage, make_manager, drain):
    async def scenario():
        manager = make_manager()
        await manager.init()
        await storage.set_local({SETTINGS: {"maxSuspended": 7}})
        await drain(manager)
        await manager.teardown()
        return manager

    assert asyncio.run(scenario()).scheduler.max_suspended == 7


def test_teardown_cancels_timers_and_saves_session(browser, storage, make_manager, drain):
    async def scenario():
        ref = browser.open_tab("https://a.com/")
        manager = make_manager()
        await manager.init()
        browser.set_idle("idle")
        await drain(manager)
        assert manager.scheduler.pending() == [ref]

        await manager.teardown()
        await asyncio.sleep(TIMER_WAIT)
        return manager

    manager = asyncio.run(scenario())
    assert browser.discard_calls == []
    assert [entry["url"] for entry in storage.local[SAVED_SESSION]] == ["https://a.com/"]
    assert manager.channel.closed


def test_restore_on_startup_is_additive(browser, storage, make_manager):
    storage.local[SAVED_SESSION] = [{"url": "https://a.com/", "title": "A", "group": "a.com"}]
    existing = browser.open_tab("https://a.com/")

    async def scenario():
        manager = make_manager(restore_on_startup=True)
        await manager.init()
        groups = manager.tab_groups()
        await manager.teardown()
        return groups

    groups = asyncio.run(scenario())
    assert browser.urls() == ["https://a.com/", "https://a.com/"]
    assert groups["a.com"][0] == existing
    assert len(groups["a.com"]) == 2


def test_switch_to_tab_focuses_window(browser, make_manager):
    async def scenario():
        ref = browser.open_tab("https://a.com/", window_id=4)
        manager = make_manager()
        await manager.init()
        await manager.switch_to_tab(ref)
        await manager.teardown()
        return ref

    ref = asyncio.run(scenario())
    assert browser.focused_window == 4
    assert asyncio.run(browser.get_tab(ref)).active


def test_switch_to_closed_tab_prunes_it(browser, make_manager):
    async def scenario():
        ref = browser.open_tab("https://a.com/")
        manager = make_manager()
        await manager.init()
        browser.close_tab(ref)
        with pytest.raises(TransientResourceError):
            await manager.switch_to_tab(ref)
        groups = manager.tab_groups()
        await manager.teardown()
        return groups

    assert asyncio.run(scenario()) == {}


def test_remote_change_is_merged_and_pushed(browser, storage, settings, make_manager, drain):
    settings.sync_enabled = True

    async def scenario():
        browser.open_tab("https://a.com/")
        manager = make_manager()
        await manager.init()
        assert storage.synced[SYNC_URLS] == {"a.com": ["https://a.com/"]}

        storage.write_remote({"tabGroups": {"b.com": [1234]}, "urls": {"b.com": ["https://b.com/"]}})
        await drain(manager)
        groups = manager.tab_groups()
        await manager.teardown()
        return groups

    groups = asyncio.run(scenario())
    assert sorted(browser.urls()) == ["https://a.com/", "https://b.com/"]
    assert list(groups) == ["a.com", "b.com"]
    assert storage.synced[SYNC_URLS] == {"a.com": ["https://a.com/"], "b.com": ["https://b.com/"]}


def test_run_consumes_events_until_stopped(browser, make_manager):
    async def scenario():
        manager = make_manager()
        await manager.init()
        runner = asyncio.create_task(manager.run())
        ref = browser.open_tab("https://a.com/")
        await asyncio.sleep(0.05)
        manager.stop()
        await asyncio.wait_for(runner, timeout=1)
        groups = manager.tab_groups()
        await manager.teardown()
        return ref, groups

    ref, groups = asyncio.run(scenario())
    assert groups == {"a.com": [ref]}
