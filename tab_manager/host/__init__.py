"""Host platform adapters: tab directory and persistence gateway implementations."""

from .base import LOCAL_AREA, SYNC_AREA, PersistenceGateway, ResourceDirectory
from .chrome import ChromeDirectory, ChromeWatcher
from .json_storage import JsonFileStorage
from .memory import InMemoryBrowser, MemoryStorage

__all__ = [
    "LOCAL_AREA",
    "SYNC_AREA",
    "PersistenceGateway",
    "ResourceDirectory",
    "ChromeDirectory",
    "ChromeWatcher",
    "JsonFileStorage",
    "InMemoryBrowser",
    "MemoryStorage",
]
