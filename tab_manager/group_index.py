"""Domain grouping of open tabs."""

from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from .models import TabRef


def extract_group_key(url: Optional[str]) -> Optional[str]:
    """
    Extract the grouping key (hostname) from a tab URL.

    Args:
        url: Full URL

    Returns:
        Lower-cased hostname (e.g., "github.com"), or None when the URL has
        no authority component or cannot be parsed
    """
    if not url:
        return None
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return hostname or None


class GroupIndex:
    """
    Ordered mapping of domain -> tab refs.

    A ref lives in at most one group and an emptied group is deleted.
    Every mutator returns True when the mapping actually changed, so
    callers only persist real changes.
    """

    def __init__(self, groups: Optional[Dict[str, Iterable[TabRef]]] = None):
        self._groups: Dict[str, List[TabRef]] = {}
        if groups:
            for key, refs in groups.items():
                for ref in refs:
                    self.assign(ref, key)

    def assign(self, ref: TabRef, key: str) -> bool:
        """Move ``ref`` into ``key``'s group, appending it if not already there."""
        current = self.group_of(ref)
        if current == key:
            return False
        if current is not None:
            self._discard(ref, current)
        self._groups.setdefault(key, []).append(ref)
        return True

    def remove(self, ref: TabRef) -> bool:
        """Remove ``ref`` from whichever group holds it."""
        current = self.group_of(ref)
        if current is None:
            return False
        self._discard(ref, current)
        return True

    def prune(self, valid_refs: Iterable[TabRef]) -> List[TabRef]:
        """
        Drop every ref not in ``valid_refs``.

        Returns:
            The refs that were removed
        """
        valid = set(valid_refs)
        removed = []
        for key in list(self._groups):
            kept = []
            for ref in self._groups[key]:
                if ref in valid:
                    kept.append(ref)
                else:
                    removed.append(ref)
            if kept:
                self._groups[key] = kept
            else:
                del self._groups[key]
        return removed

    def group_of(self, ref: TabRef) -> Optional[str]:
        for key, refs in self._groups.items():
            if ref in refs:
                return key
        return None

    def refs(self) -> List[TabRef]:
        return [ref for refs in self._groups.values() for ref in refs]

    def mapping(self) -> Dict[str, List[TabRef]]:
        """Read-only copy of the current mapping."""
        return {key: list(refs) for key, refs in self._groups.items()}

    def __contains__(self, ref: TabRef) -> bool:
        return self.group_of(ref) is not None

    def __len__(self) -> int:
        return len(self._groups)

    def _discard(self, ref: TabRef, key: str) -> None:
        refs = self._groups[key]
        refs.remove(ref)
        if not refs:
            del self._groups[key]
