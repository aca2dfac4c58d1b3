"""Google Chrome adapter driven through AppleScript, with a polling watcher for host events."""

import asyncio
import logging
import re
import subprocess
from typing import Callable, Dict, List, Optional

from .applescript import AppleScriptExecutor, escape_applescript_string
from .base import ResourceDirectory
from ..config import BROWSER, IDLE_THRESHOLD, POLL_INTERVAL
from ..events import EventChannel, HostEvent, IdleStateChanged, TabActivated, TabChanged, TabRemoved
from ..exceptions import HostError, TabManagerError, TransientResourceError
from ..models import IdleState, TabRef, TabSnapshot

logger = logging.getLogger(__name__)

# Field delimiter in AppleScript output; titles go last so they may contain it
DELIMITER = "|||"

_HID_IDLE_RE = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


def parse_tab_listing(output: str) -> List[TabSnapshot]:
    """
    Parse the listing script output.

    Each line is ``tabId|||windowId|||isActive|||url|||title``.
    Malformed lines are skipped.
    """
    tabs = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split(DELIMITER, 4)
        if len(parts) != 5:
            continue
        try:
            tab_id = int(parts[0])
            window_id = int(parts[1])
        except ValueError:
            logger.debug("Skipping malformed tab line: %r", line)
            continue
        tabs.append(TabSnapshot(
            id=tab_id,
            url=parts[3],
            title=parts[4],
            active=parts[2].strip().lower() == "true",
            window_id=window_id,
        ))
    return tabs


def parse_hid_idle_seconds(output: str) -> Optional[float]:
    """Seconds since the last keyboard/mouse input, from ``ioreg -c IOHIDSystem`` output."""
    match = _HID_IDLE_RE.search(output or "")
    if not match:
        return None
    return int(match.group(1)) / 1_000_000_000


def read_idle_seconds() -> Optional[float]:
    try:
        result = subprocess.run(
            ["ioreg", "-c", "IOHIDSystem"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("ioreg unavailable: %s", e)
        return None
    return parse_hid_idle_seconds(result.stdout)


def idle_state_for(idle_seconds: float, threshold: float) -> IdleState:
    return "idle" if idle_seconds >= threshold else "active"


def diff_listings(previous: Dict[TabRef, TabSnapshot], current: List[TabSnapshot]) -> List[HostEvent]:
    """
    Translate two consecutive listings into host events.

    New tabs and URL/title changes become TabChanged, tabs that became their
    window's active tab become TabActivated, and vanished tabs become TabRemoved.
    """
    events: List[HostEvent] = []
    seen = set()
    for tab in current:
        seen.add(tab.id)
        before = previous.get(tab.id)
        if before is None:
            events.append(TabChanged(tab.id, {"url": tab.url, "title": tab.title}))
        else:
            changes = {}
            if tab.url != before.url:
                changes["url"] = tab.url
            if tab.title != before.title:
                changes["title"] = tab.title
            if changes:
                events.append(TabChanged(tab.id, changes))
        if tab.active and (before is None or not before.active):
            events.append(TabActivated(tab.id, tab.window_id))

    for ref in previous:
        if ref not in seen:
            events.append(TabRemoved(ref))
    return events


class ChromeWatcher:
    """
    Polls the browser and the system idle time, publishing what changed.

    The first poll only records a baseline.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        publish: Callable[[HostEvent], None],
        poll_interval: float = POLL_INTERVAL,
        idle_threshold: float = IDLE_THRESHOLD,
        idle_reader: Callable[[], Optional[float]] = read_idle_seconds,
    ):
        self.directory = directory
        self.publish = publish
        self.poll_interval = poll_interval
        self.idle_threshold = idle_threshold
        self.idle_reader = idle_reader
        self._previous: Optional[Dict[TabRef, TabSnapshot]] = None
        self._idle_state: IdleState = "active"
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def check(self) -> List[HostEvent]:
        """Run one poll and return the events it published."""
        events: List[HostEvent] = []

        tabs = await self.directory.list_tabs()
        if self._previous is not None:
            events.extend(diff_listings(self._previous, tabs))
        self._previous = {tab.id: tab for tab in tabs}

        idle_seconds = await asyncio.to_thread(self.idle_reader)
        if idle_seconds is not None:
            state = idle_state_for(idle_seconds, self.idle_threshold)
            if state != self._idle_state:
                self._idle_state = state
                events.append(IdleStateChanged(state))

        for event in events:
            self.publish(event)
        return events

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.check()
            except TabManagerError as e:
                # Keep polling; the browser may simply not be running
                logger.debug("Browser poll failed: %s", e)
            await asyncio.sleep(self.poll_interval)


class ChromeDirectory(ResourceDirectory):
    """
    Resource directory for Google Chrome on macOS.

    Tabs are addressed by Chrome's stable tab ``id``. Chrome's scripting
    dictionary exposes neither pinned nor audible state and cannot discard
    a tab, so snapshots report both as False and ``discard_tab`` raises
    HostError. ``supports_discard`` is False so the scheduler never arms
    timers against it.
    """

    supports_discard = False

    def __init__(
        self,
        browser: str = BROWSER,
        executor: Optional[AppleScriptExecutor] = None,
        poll_interval: float = POLL_INTERVAL,
        idle_threshold: float = IDLE_THRESHOLD,
    ):
        super().__init__()
        self.browser = escape_applescript_string(browser)
        self.executor = executor or AppleScriptExecutor()
        self.watcher = ChromeWatcher(self, self._publish, poll_interval, idle_threshold)

    def attach(self, channel: EventChannel) -> None:
        super().attach(channel)
        self.watcher.start()

    def detach(self) -> None:
        self.watcher.stop()
        super().detach()

    async def list_tabs(self, active: Optional[bool] = None, window_id: Optional[int] = None) -> List[TabSnapshot]:
        script = f'''
        tell application "{self.browser}"
            set tabData to ""
            repeat with w in windows
                set windowId to id of w
                set activeTabId to id of active tab of w
                repeat with t in tabs of w
                    set tabId to id of t
                    set isActive to (tabId = activeTabId)
                    if tabData is not "" then
                        set tabData to tabData & linefeed
                    end if
                    set tabData to tabData & (tabId as text) & "{DELIMITER}" & (windowId as text) & "{DELIMITER}" & (isActive as text) & "{DELIMITER}" & (URL of t) & "{DELIMITER}" & (title of t)
                end repeat
            end repeat
            return tabData
        end tell
        '''
        tabs = parse_tab_listing(await self.executor.run(script))
        if active is not None:
            tabs = [tab for tab in tabs if tab.active == active]
        if window_id is not None:
            tabs = [tab for tab in tabs if tab.window_id == window_id]
        return tabs

    async def get_tab(self, ref: TabRef) -> TabSnapshot:
        for tab in await self.list_tabs():
            if tab.id == ref:
                return tab
        raise TransientResourceError(ref)

    async def create_tab(self, url: str, pinned: bool = False, active: bool = False) -> TabSnapshot:
        if pinned:
            logger.debug("Chrome cannot pin tabs from AppleScript, opening %s unpinned", url)
        keep_focus = "" if active else "set active tab index of w to previousIndex"
        script = f'''
        tell application "{self.browser}"
            if (count of windows) = 0 then make new window
            set w to front window
            set previousIndex to active tab index of w
            set newTab to make new tab at end of tabs of w with properties {{URL:"{escape_applescript_string(url)}"}}
            {keep_focus}
            return (id of newTab as text) & "{DELIMITER}" & (id of w as text)
        end tell
        '''
        output = await self.executor.run(script)
        try:
            tab_id, window_id = (int(part) for part in output.split(DELIMITER))
        except ValueError as e:
            raise HostError(f"Unexpected reply opening {url}: {output!r}") from e
        return TabSnapshot(id=tab_id, url=url, title=url, active=active, window_id=window_id)

    async def discard_tab(self, ref: TabRef) -> None:
        raise HostError(f"{self.browser} cannot discard tabs through AppleScript")

    async def activate_tab(self, ref: TabRef) -> None:
        script = f'''
        tell application "{self.browser}"
            repeat with w in windows
                set localTabIndex to 1
                repeat with t in tabs of w
                    if (id of t) = {int(ref)} then
                        set active tab index of w to localTabIndex
                        return "ok"
                    end if
                    set localTabIndex to localTabIndex + 1
                end repeat
            end repeat
            return "missing"
        end tell
        '''
        if await self.executor.run(script) == "missing":
            raise TransientResourceError(ref)

    async def focus_window(self, window_id: int) -> None:
        script = f'''
        tell application "{self.browser}"
            activate
            set index of (first window whose id is {int(window_id)}) to 1
        end tell
        '''
        await self.executor.run(script)
