"""Base command class for messages from the UI layer."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class Command(ABC):
    """Abstract base class for message handlers at the messaging boundary."""

    message_type: str = ""

    def __init__(self, manager):
        self.manager = manager

    def can_handle(self, message_type: str) -> bool:
        """
        Check if this command can handle the given message type.

        Args:
            message_type: The ``type`` field of the incoming message

        Returns:
            True if this command can handle the message type
        """
        return message_type == self.message_type

    @abstractmethod
    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute the command for an incoming message.

        Args:
            message: Message dictionary with ``type`` and optional ``data``

        Returns:
            Response dictionary: ``{"success": True, "data": ...}`` or
            ``{"success": False, "error": "..."}``
        """
        pass


def ok(data: Optional[Any] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"success": True}
    if data is not None:
        response["data"] = data
    return response


def error(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}
