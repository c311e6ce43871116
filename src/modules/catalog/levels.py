"""Fixed description of the catalog hierarchy levels.

Each level knows its model, its parent level (and the FK that points at it),
the reverse relations that count as "active children", the product FK that
references it, and the plural key used by ingestion counters and caches.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Type

from modules.catalog.models import (
    Brand,
    Category,
    HierarchyModel,
    Manufacturer,
    PackSize,
    PackType,
    Subcategory,
    Variant,
)


class HierarchyLevel(str, Enum):
    MANUFACTURER = "manufacturer"
    BRAND = "brand"
    VARIANT = "variant"
    PACK_SIZE = "pack_size"
    PACK_TYPE = "pack_type"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"

    @property
    def meta(self) -> LevelMeta:
        return LEVELS[self]

    @property
    def model(self) -> Type[HierarchyModel]:
        return self.meta.model

    @property
    def parent(self) -> Optional[HierarchyLevel]:
        return self.meta.parent

    @property
    def parent_field(self) -> Optional[str]:
        return self.parent.value if self.parent else None

    @property
    def plural(self) -> str:
        return self.meta.plural

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class LevelMeta:
    model: Type[HierarchyModel]
    parent: Optional[HierarchyLevel]
    plural: str
    children: Tuple[str, ...]
    has_slug: bool = False


LEVELS: dict[HierarchyLevel, LevelMeta] = {
    HierarchyLevel.MANUFACTURER: LevelMeta(
        model=Manufacturer,
        parent=None,
        plural="manufacturers",
        children=("brands", "products"),
    ),
    HierarchyLevel.BRAND: LevelMeta(
        model=Brand,
        parent=HierarchyLevel.MANUFACTURER,
        plural="brands",
        children=("variants", "products"),
    ),
    HierarchyLevel.VARIANT: LevelMeta(
        model=Variant,
        parent=HierarchyLevel.BRAND,
        plural="variants",
        children=("pack_sizes", "pack_types", "products"),
    ),
    HierarchyLevel.PACK_SIZE: LevelMeta(
        model=PackSize,
        parent=HierarchyLevel.VARIANT,
        plural="pack_sizes",
        children=("products",),
    ),
    HierarchyLevel.PACK_TYPE: LevelMeta(
        model=PackType,
        parent=HierarchyLevel.VARIANT,
        plural="pack_types",
        children=("products",),
    ),
    HierarchyLevel.CATEGORY: LevelMeta(
        model=Category,
        parent=None,
        plural="categories",
        children=("subcategories", "products"),
        has_slug=True,
    ),
    HierarchyLevel.SUBCATEGORY: LevelMeta(
        model=Subcategory,
        parent=HierarchyLevel.CATEGORY,
        plural="subcategories",
        children=("products",),
        has_slug=True,
    ),
}

# Resolution order used by ingestion: parents always precede children.
PRODUCT_CHAIN: Tuple[HierarchyLevel, ...] = (
    HierarchyLevel.MANUFACTURER,
    HierarchyLevel.BRAND,
    HierarchyLevel.VARIANT,
    HierarchyLevel.PACK_SIZE,
    HierarchyLevel.PACK_TYPE,
)
TAXONOMY_CHAIN: Tuple[HierarchyLevel, ...] = (
    HierarchyLevel.CATEGORY,
    HierarchyLevel.SUBCATEGORY,
)
# Levels whose names feed the derived product name / SKU.
NAME_BEARING_LEVELS: Tuple[HierarchyLevel, ...] = (
    HierarchyLevel.BRAND,
    HierarchyLevel.VARIANT,
    HierarchyLevel.PACK_SIZE,
    HierarchyLevel.PACK_TYPE,
)
