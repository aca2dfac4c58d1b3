"""Command to import a previously exported payload."""

import logging
from typing import Any, Dict
from .base import Command, error, ok
from ..exceptions import MalformedImportError

logger = logging.getLogger(__name__)


class ImportTabsCommand(Command):
    """Opens every imported URL that is not already open."""

    message_type = "IMPORT_TABS"

    async def execute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = await self.manager.import_tabs(message.get("data"))
        except MalformedImportError as e:
            logger.info("Rejected import: %s", e)
            return error(str(e))
        return ok(result.to_dict())
