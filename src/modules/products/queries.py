"""Read options for product look-ups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

HIERARCHY_RELATIONS = ("manufacturer", "brand", "variant", "pack_size", "pack_type")
TAXONOMY_RELATIONS = ("category", "subcategory")


@dataclass(frozen=True)
class ProductQueryOptions:
    include_hierarchy: bool = False
    include_taxonomy: bool = False
    include_deleted: bool = False

    def select_related(self) -> Tuple[str, ...]:
        related: Tuple[str, ...] = ()
        if self.include_hierarchy:
            related += HIERARCHY_RELATIONS
        if self.include_taxonomy:
            related += TAXONOMY_RELATIONS
        return related


DEFAULT_OPTIONS = ProductQueryOptions()
WITH_HIERARCHY = ProductQueryOptions(include_hierarchy=True)
