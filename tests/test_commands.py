import asyncio

from tab_manager.commands import CommandExecutor


def _run(make_manager, *messages, setup=None):
    """Init a manager, send ``messages`` in order and return the responses."""
    async def scenario():
        manager = make_manager()
        await manager.init()
        if setup is not None:
            setup(manager)
        executor = CommandExecutor(manager)
        responses = [await executor.execute(message) for message in messages]
        await manager.teardown()
        return responses

    return asyncio.run(scenario())


def test_rejects_bad_messages(make_manager):
    responses = _run(make_manager, "EXPORT_TABS", {"data": {}}, {"type": "NOPE"})
    assert [r["success"] for r in responses] == [False, False, False]
    assert responses[0]["error"] == "message must be an object"
    assert responses[1]["error"] == "message type is required"
    assert responses[2]["error"] == "Unknown message type: NOPE"


def test_export_tabs(browser, make_manager):
    ref = browser.open_tab("https://x.com/p")
    (response,) = _run(make_manager, {"type": "EXPORT_TABS"})
    assert response["success"]
    assert response["data"]["tabGroups"] == {"x.com": [ref]}
    assert response["data"]["urls"] == {"x.com": ["https://x.com/p"]}


def test_import_tabs(browser, make_manager):
    payload = {"urls": {"y.com": ["https://y.com/"]}}
    malformed, imported, again = _run(
        make_manager,
        {"type": "IMPORT_TABS", "data": {"tabGroups": {}}},
        {"type": "IMPORT_TABS", "data": payload},
        {"type": "IMPORT_TABS", "data": payload},
    )
    assert not malformed["success"]
    assert malformed["error"].startswith("Invalid import payload")
    assert imported["success"]
    assert len(imported["data"]["created"]) == 1
    assert again["data"] == {"created": [], "failures": [], "skipped": ["https://y.com/"]}
    assert browser.urls() == ["https://y.com/"]


def test_save_and_restore_session(browser, make_manager):
    browser.open_tab("https://a.com/")
    browser.open_tab("https://b.com/")
    saved, restored = _run(make_manager, {"type": "SAVE_SESSION"}, {"type": "RESTORE_SESSION"})
    assert saved == {"success": True, "data": {"count": 2}}
    assert len(restored["data"]["created"]) == 2
    assert len(browser.urls()) == 4


def test_switch_tab(browser, make_manager):
    ref = browser.open_tab("https://a.com/", window_id=3)
    switched, missing, invalid = _run(
        make_manager,
        {"type": "SWITCH_TAB", "data": {"tabId": ref}},
        {"type": "SWITCH_TAB", "data": {"tabId": 999}},
        {"type": "SWITCH_TAB", "data": {"tabId": "1"}},
    )
    assert switched == {"success": True}
    assert browser.focused_window == 3
    assert missing == {"success": False, "error": "Tab 999 is no longer open"}
    assert invalid == {"success": False, "error": "tabId must be an integer"}


def test_groups_recent_and_settings(browser, make_manager):
    ref = browser.open_tab("https://a.com/")

    groups, recent_before, switched, updated, current, bad, cleared = _run(
        make_manager,
        {"type": "GET_TAB_GROUPS"},
        {"type": "GET_RECENT_TABS"},
        {"type": "SWITCH_TAB", "data": {"tabId": ref}},
        {"type": "UPDATE_SETTINGS", "data": {"autoSuspend": False}},
        {"type": "GET_SETTINGS"},
        {"type": "UPDATE_SETTINGS", "data": "nope"},
        {"type": "CLEAR_RECENT_TABS"},
    )
    assert groups["data"] == {"a.com": [ref]}
    assert recent_before["data"] == []
    assert switched["success"]
    assert updated["data"]["autoSuspend"] is False
    assert current["data"] == updated["data"]
    assert not bad["success"]
    assert cleared == {"success": True}


def test_unexpected_exception_becomes_error_response(make_manager):
    def break_export(manager):
        async def explode():
            raise RuntimeError("boom")
        manager.export_tabs = explode

    (response,) = _run(make_manager, {"type": "EXPORT_TABS"}, setup=break_export)
    assert response == {"success": False, "error": "EXPORT_TABS failed: boom"}
