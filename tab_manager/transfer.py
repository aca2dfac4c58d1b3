"""Export of group state to a portable payload, and additive import."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import HostError, MalformedImportError, PartialImportFailure
from .group_index import GroupIndex
from .host.base import ResourceDirectory
from .models import ImportResult, TabRef, now
from .persistence import StateStore

logger = logging.getLogger(__name__)


class ImportPayload(BaseModel):
    """Shape an import must have; only ``urls`` is required."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    urls: Dict[str, List[str]] = Field(description="Domain -> URLs to open")
    tab_groups: Dict[str, List[Any]] = Field(default_factory=dict, alias="tabGroups")
    timestamp: Optional[float] = None

    @field_validator("urls")
    @classmethod
    def _domains_not_blank(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for domain in value:
            if not domain.strip():
                raise ValueError("domain keys must not be blank")
        return value


def parse_import_payload(data: Any) -> ImportPayload:
    """
    Validate raw import data.

    Raises:
        MalformedImportError: If the data is not a mapping with a
            domain -> list-of-URL ``urls`` field
    """
    if not isinstance(data, dict):
        raise MalformedImportError("Import payload must be a JSON object")
    try:
        return ImportPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedImportError(f"Invalid import payload: {e.errors()[0]['msg']}") from e


class TabTransfer:
    """Builds export payloads and applies import payloads to the open tabs."""

    def __init__(self, directory: ResourceDirectory, store: StateStore, groups: GroupIndex):
        self.directory = directory
        self.store = store
        self.groups = groups

    async def export(self) -> Dict[str, Any]:
        """
        Build ``{tabGroups, urls, timestamp}`` from the current groups.

        Refs whose tab has closed are pruned from the groups and left out.
        """
        mapping = self.groups.mapping()
        tab_groups: Dict[str, List[TabRef]] = {}
        urls: Dict[str, List[str]] = {}
        missing: List[TabRef] = []

        open_tabs = {tab.id: tab for tab in await self.directory.list_tabs()}
        for domain, refs in mapping.items():
            for ref in refs:
                tab = open_tabs.get(ref)
                if tab is None:
                    missing.append(ref)
                    continue
                tab_groups.setdefault(domain, []).append(ref)
                urls.setdefault(domain, []).append(tab.url)

        if missing:
            logger.debug("Export pruned closed tab(s) %s", missing)
            changed = False
            for ref in missing:
                changed = self.groups.remove(ref) or changed
            if changed:
                await self.store.save_groups(self.groups)

        return {"tabGroups": tab_groups, "urls": urls, "timestamp": now()}

    async def import_payload(self, data: Any) -> ImportResult:
        """
        Open every payload URL not already open and group it under its domain.

        URLs are compared by exact string; nothing is mutated if the payload
        is malformed.
        """
        payload = parse_import_payload(data)

        open_urls = {tab.url for tab in await self.directory.list_tabs()}
        result = ImportResult()
        for domain, domain_urls in payload.urls.items():
            for url in domain_urls:
                if url in open_urls:
                    result.skipped.append(url)
                    continue
                try:
                    tab = await self.directory.create_tab(url, pinned=False, active=False)
                except HostError as e:
                    failure = PartialImportFailure(url, str(e))
                    logger.warning("Import: %s", failure)
                    result.failures.append(failure)
                    continue
                open_urls.add(url)
                self.groups.assign(tab.id, domain)
                result.created.append(tab.id)

        if result.created:
            await self.store.save_groups(self.groups)
        logger.info(
            "Imported %d tab(s), %d already open, %d failed",
            len(result.created), len(result.skipped), len(result.failures),
        )
        return result
