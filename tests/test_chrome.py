import asyncio

import pytest

from tab_manager.events import IdleStateChanged, TabActivated, TabChanged, TabRemoved
from tab_manager.exceptions import HostError, TransientResourceError
from tab_manager.host.chrome import (
    ChromeDirectory,
    ChromeWatcher,
    diff_listings,
    idle_state_for,
    parse_hid_idle_seconds,
    parse_tab_listing,
)
from tab_manager.models import TabSnapshot
from tab_manager.host.applescript import escape_applescript_string

LISTING = "\n".join([
    "101|||1|||true|||https://a.com/|||A | B ||| C",
    "102|||1|||false|||https://b.com/x|||B",
    "garbage line",
    "x|||1|||false|||https://c.com/|||C",
    "",
    "201|||2|||true|||chrome://newtab/|||New Tab",
])


class _ScriptedExecutor:
    """Returns canned osascript output and records the scripts it was given."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.scripts = []

    async def run(self, script):
        self.scripts.append(script)
        return self.replies.pop(0)


def test_parse_tab_listing():
    tabs = parse_tab_listing(LISTING)
    assert [tab.id for tab in tabs] == [101, 102, 201]
    assert tabs[0] == TabSnapshot(id=101, url="https://a.com/", title="A | B ||| C", active=True, window_id=1)
    assert not tabs[1].active
    assert tabs[2].window_id == 2


def test_parse_hid_idle_seconds():
    output = '    | |   "HIDIdleTime" = 2500000000\n    | |   "HIDKeyboardModifierMappingPairs" = ()'
    assert parse_hid_idle_seconds(output) == 2.5
    assert parse_hid_idle_seconds("nothing here") is None
    assert idle_state_for(61, 60) == "idle"
    assert idle_state_for(1.5, 60) == "active"


def test_diff_listings():
    previous = {
        1: TabSnapshot(1, "https://a.com/", "A", active=True, window_id=1),
        2: TabSnapshot(2, "https://b.com/", "B", window_id=1),
        3: TabSnapshot(3, "https://c.com/", "C", window_id=1),
    }
    current = [
        TabSnapshot(1, "https://a.com/", "A", window_id=1),
        TabSnapshot(2, "https://b.com/next", "B2", active=True, window_id=1),
        TabSnapshot(4, "https://d.com/", "D", window_id=1),
    ]
    assert diff_listings(previous, current) == [
        TabChanged(2, {"url": "https://b.com/next", "title": "B2"}),
        TabActivated(2, 1),
        TabChanged(4, {"url": "https://d.com/", "title": "D"}),
        TabRemoved(3),
    ]


def test_watcher_publishes_changes_after_baseline(browser):
    published = []
    idle_seconds = [0.0]

    async def scenario():
        watcher = ChromeWatcher(browser, published.append, idle_threshold=60, idle_reader=lambda: idle_seconds[0])
        ref = browser.open_tab("https://a.com/")
        assert await watcher.check() == []

        browser.navigate(ref, "https://b.com/")
        idle_seconds[0] = 120.0
        events = await watcher.check()
        assert await watcher.check() == []

        idle_seconds[0] = 0.0
        events += await watcher.check()
        return ref, events

    ref, events = asyncio.run(scenario())
    assert events == [
        TabChanged(ref, {"url": "https://b.com/", "title": "https://b.com/"}),
        IdleStateChanged("idle"),
        IdleStateChanged("active"),
    ]
    assert published == events


def test_list_tabs_filters():
    directory = ChromeDirectory(executor=_ScriptedExecutor(LISTING, LISTING))
    assert [tab.id for tab in asyncio.run(directory.list_tabs(active=False))] == [102]
    assert [tab.id for tab in asyncio.run(directory.list_tabs(window_id=2))] == [201]


def test_create_tab_in_background():
    executor = _ScriptedExecutor("301|||1")
    directory = ChromeDirectory(executor=executor)
    tab = asyncio.run(directory.create_tab('https://a.com/?q="x"'))
    assert tab == TabSnapshot(id=301, url='https://a.com/?q="x"', title='https://a.com/?q="x"', window_id=1)
    assert 'URL:"https://a.com/?q=\\"x\\""' in executor.scripts[0]
    assert "set active tab index of w to previousIndex" in executor.scripts[0]


def test_create_tab_with_unexpected_reply():
    directory = ChromeDirectory(executor=_ScriptedExecutor("missing value"))
    with pytest.raises(HostError):
        asyncio.run(directory.create_tab("https://a.com/", active=True))


def test_get_and_discard_tab():
    executor = _ScriptedExecutor(LISTING, LISTING)
    directory = ChromeDirectory(executor=executor)
    assert asyncio.run(directory.get_tab(102)).url == "https://b.com/x"
    with pytest.raises(TransientResourceError):
        asyncio.run(directory.get_tab(999))
    assert not directory.supports_discard
    with pytest.raises(HostError):
        asyncio.run(directory.discard_tab(102))
    assert len(executor.scripts) == 2


def test_activate_missing_tab():
    directory = ChromeDirectory(executor=_ScriptedExecutor("ok", "missing"))
    asyncio.run(directory.activate_tab(101))
    with pytest.raises(TransientResourceError):
        asyncio.run(directory.activate_tab(999))


def test_escape_applescript_string():
    assert escape_applescript_string('say "hi"\\now') == 'say \\"hi\\"\\\\now'
    assert escape_applescript_string("a\nb\tc") == "a\\nb\\tc"
