"""Custom exception classes for the tab manager."""

from typing import Any, Optional


class TabManagerError(Exception):
    """Base exception for tab manager errors."""
    pass


class TransientResourceError(TabManagerError):
    """Exception raised when a referenced tab no longer exists."""

    def __init__(self, ref: Any, message: Optional[str] = None):
        self.ref = ref
        super().__init__(message or f"Tab {ref} no longer exists")


class HostError(TabManagerError):
    """Exception raised when a host browser operation fails for another reason."""
    pass


class PersistenceError(TabManagerError):
    """Exception raised when a durable read or write fails."""
    pass


class MalformedImportError(TabManagerError):
    """Exception raised when an import payload is missing its required shape."""
    pass


class PartialImportFailure(TabManagerError):
    """
    Record of a single tab that could not be created.

    Collected into restore/import/merge results instead of being raised,
    so the remaining items still get processed.
    """

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to open {url}: {reason}")

    def to_dict(self):
        return {"url": self.url, "reason": self.reason}
