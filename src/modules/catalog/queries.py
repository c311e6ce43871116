"""Read options for hierarchy look-ups.

The set of relations a read may pull in is fixed: the parent chain.  Callers
pick from these flags instead of assembling ad-hoc include structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from modules.catalog.levels import HierarchyLevel


@dataclass(frozen=True)
class HierarchyQueryOptions:
    include_parent: bool = False
    include_ancestors: bool = False
    include_deleted: bool = False

    def select_related(self, level: HierarchyLevel) -> Tuple[str, ...]:
        """``select_related`` paths implied by the flags for ``level``."""
        if not (self.include_parent or self.include_ancestors):
            return ()
        paths: list[str] = []
        path = ""
        current = level
        while current.parent is not None:
            path = f"{path}__{current.parent_field}" if path else current.parent_field
            paths.append(path)
            if not self.include_ancestors:
                break
            current = current.parent
        return tuple(paths)


DEFAULT_OPTIONS = HierarchyQueryOptions()
HISTORICAL = HierarchyQueryOptions(include_deleted=True)
