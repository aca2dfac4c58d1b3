"""Collaborator interfaces the core consumes from the host platform."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..events import EventChannel
from ..models import TabRef, TabSnapshot

LOCAL_AREA = "local"
SYNC_AREA = "sync"


class ResourceDirectory(ABC):
    """
    Lists, creates, discards and focuses host tabs.

    Implementations publish TabChanged/TabRemoved/TabActivated/IdleStateChanged
    events onto the attached channel.
    """

    # False for hosts whose discard_tab always refuses
    supports_discard = True

    def __init__(self):
        self.channel: Optional[EventChannel] = None

    def attach(self, channel: EventChannel) -> None:
        """Start publishing host notifications onto ``channel``."""
        self.channel = channel

    def detach(self) -> None:
        self.channel = None

    def _publish(self, event) -> None:
        if self.channel is not None:
            self.channel.publish(event)

    @abstractmethod
    async def list_tabs(self, active: Optional[bool] = None, window_id: Optional[int] = None) -> List[TabSnapshot]:
        """
        List open tabs, optionally filtered.

        Args:
            active: Only tabs whose active flag equals this value
            window_id: Only tabs in this window
        """
        pass

    @abstractmethod
    async def get_tab(self, ref: TabRef) -> TabSnapshot:
        """Get one tab. Raises TransientResourceError if it no longer exists."""
        pass

    @abstractmethod
    async def create_tab(self, url: str, pinned: bool = False, active: bool = False) -> TabSnapshot:
        """Open a new tab. Raises HostError if the host refuses."""
        pass

    @abstractmethod
    async def discard_tab(self, ref: TabRef) -> None:
        """Release a tab's content, keeping its entry. Raises TransientResourceError or HostError."""
        pass

    @abstractmethod
    async def activate_tab(self, ref: TabRef) -> None:
        pass

    @abstractmethod
    async def focus_window(self, window_id: int) -> None:
        pass


class PersistenceGateway(ABC):
    """
    Durable key-value storage with a local area and a synchronized area.

    Implementations publish StorageChanged events onto the attached channel.
    Failures raise PersistenceError.
    """

    def __init__(self):
        self.channel: Optional[EventChannel] = None

    def attach(self, channel: EventChannel) -> None:
        self.channel = channel

    def detach(self) -> None:
        self.channel = None

    def _publish(self, event) -> None:
        if self.channel is not None:
            self.channel.publish(event)

    @abstractmethod
    async def get_local(self, keys: Iterable[str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def set_local(self, values: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def get_synced(self, keys: Iterable[str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def set_synced(self, values: Dict[str, Any]) -> None:
        pass
