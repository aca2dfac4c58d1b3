"""Host notifications delivered to the lifecycle manager through an event channel."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .models import IdleState, TabRef


@dataclass(frozen=True)
class TabChanged:
    """A tab was created or updated; ``changes`` holds only the fields that changed."""
    ref: TabRef
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TabRemoved:
    ref: TabRef


@dataclass(frozen=True)
class TabActivated:
    ref: TabRef
    window_id: Optional[int] = None


@dataclass(frozen=True)
class IdleStateChanged:
    state: IdleState


@dataclass(frozen=True)
class StorageChanged:
    """Keys changed in a storage area ("local" or "sync")."""
    area: str
    keys: Tuple[str, ...] = ()


HostEvent = Union[TabChanged, TabRemoved, TabActivated, IdleStateChanged, StorageChanged]


class EventChannel:
    """
    FIFO channel between host adapters (publishers) and the manager (consumer).

    Publishing never blocks, so adapters may publish from synchronous code
    running on the event loop.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[Optional[HostEvent]]" = asyncio.Queue()
        self._closed = False

    def publish(self, event: HostEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def publish_threadsafe(self, loop: asyncio.AbstractEventLoop, event: HostEvent) -> None:
        """Publish from a thread other than the loop's."""
        loop.call_soon_threadsafe(self.publish, event)

    async def get(self) -> Optional[HostEvent]:
        """Next event, or None once the channel has been closed and drained."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Stop accepting events and wake the consumer."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed
