"""File-backed persistence: a local state file and a synced file shared between devices."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .base import LOCAL_AREA, SYNC_AREA, PersistenceGateway
from ..config import DATA_PATH, POLL_INTERVAL, SYNC_PATH
from ..events import EventChannel, StorageChanged
from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


def read_json_file(path: Path) -> Dict[str, Any]:
    """
    Read a JSON object from ``path``; a missing file reads as empty.

    Raises:
        PersistenceError: If the file cannot be read or does not hold an object
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError(f"{path} does not contain a JSON object")
    return data


def write_json_file(path: Path, data: Dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``data`` serialized as JSON."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic write
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        temp_path.replace(path)
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to write {path}: {e}") from e


class JsonFileStorage(PersistenceGateway):
    """
    Persistence gateway over two JSON files.

    The synced file is meant to live in a folder another device also writes
    to (a cloud drive). Its modification time is polled while attached, and
    external changes are published as StorageChanged("sync", keys).
    """

    def __init__(
        self,
        data_path: Union[str, Path] = DATA_PATH,
        sync_path: Union[str, Path] = SYNC_PATH,
        poll_interval: float = POLL_INTERVAL,
    ):
        super().__init__()
        self.data_path = Path(data_path)
        self.sync_path = Path(sync_path)
        self.poll_interval = poll_interval
        self._lock = asyncio.Lock()
        self._sync_mtime: Optional[float] = None
        self._sync_known: Dict[str, Any] = {}
        self._watch_task: Optional[asyncio.Task] = None

    def attach(self, channel: EventChannel) -> None:
        super().attach(channel)
        self._sync_mtime = self._mtime(self.sync_path)
        try:
            self._sync_known = read_json_file(self.sync_path)
        except PersistenceError as e:
            logger.warning("Synced file unreadable: %s", e)
            self._sync_known = {}
        if self._watch_task is None:
            self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    def detach(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        super().detach()

    async def get_local(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await self._get(self.data_path, keys)

    async def set_local(self, values: Dict[str, Any]) -> None:
        await self._set(self.data_path, values)
        self._publish(StorageChanged(LOCAL_AREA, tuple(values)))

    async def get_synced(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await self._get(self.sync_path, keys)

    async def set_synced(self, values: Dict[str, Any]) -> None:
        data = await self._set(self.sync_path, values)
        # Our own write is not an external change
        self._sync_mtime = self._mtime(self.sync_path)
        self._sync_known = data
        self._publish(StorageChanged(SYNC_AREA, tuple(values)))

    async def check_sync_file(self) -> Tuple[str, ...]:
        """
        Publish a StorageChanged event if the synced file changed on disk.

        Returns:
            The keys whose values changed (empty if none)
        """
        mtime = self._mtime(self.sync_path)
        if mtime == self._sync_mtime:
            return ()
        self._sync_mtime = mtime

        async with self._lock:
            data = await asyncio.to_thread(read_json_file, self.sync_path)
        keys = tuple(
            key for key in set(data) | set(self._sync_known)
            if data.get(key) != self._sync_known.get(key)
        )
        self._sync_known = data
        if keys:
            logger.debug("Synced file changed externally: %s", ", ".join(sorted(keys)))
            self._publish(StorageChanged(SYNC_AREA, tuple(sorted(keys))))
        return keys

    async def _get(self, path: Path, keys: Iterable[str]) -> Dict[str, Any]:
        async with self._lock:
            data = await asyncio.to_thread(read_json_file, path)
        return {key: data[key] for key in keys if key in data}

    async def _set(self, path: Path, values: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            data = await asyncio.to_thread(read_json_file, path)
            data.update(values)
            await asyncio.to_thread(write_json_file, path, data)
        return data

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.check_sync_file()
            except PersistenceError as e:
                logger.warning("Synced file check failed: %s", e)

    @staticmethod
    def _mtime(path: Path) -> Optional[float]:
        try:
            return path.stat().st_mtime
        except OSError:
            return None
