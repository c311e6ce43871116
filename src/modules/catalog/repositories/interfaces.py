"""Hierarchy repository interface.

One repository serves every catalog level; the level is passed explicitly
so the lookup rules (alive-only scope, parent filtering) are shared.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from modules.catalog.levels import HierarchyLevel
    from modules.catalog.models import HierarchyModel
    from modules.catalog.queries import HierarchyQueryOptions


class IHierarchyRepository(ABC):
    """Repository contract for catalog hierarchy entities."""

    @abstractmethod
    def get_by_id(
        self,
        level: HierarchyLevel,
        id: Any,
        options: Optional[HierarchyQueryOptions] = None,
    ) -> Optional[HierarchyModel]:
        """Retrieve an entity by primary key (alive only unless options say otherwise)."""

    @abstractmethod
    def list_active_children(
        self, level: HierarchyLevel, parent: Optional[HierarchyModel]
    ) -> List[HierarchyModel]:
        """Alive entities of ``level`` under ``parent`` (top level when ``None``)."""

    @abstractmethod
    def find_active_sibling(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        normalized_name: str,
        exclude_id: Any = None,
    ) -> Optional[HierarchyModel]:
        """Alive sibling under ``parent`` whose normalized name matches."""

    @abstractmethod
    def create(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        actor_id: Optional[str],
        **fields: Any,
    ) -> HierarchyModel:
        """Insert a new entity of ``level`` under ``parent``."""

    @abstractmethod
    def save(
        self,
        entity: HierarchyModel,
        actor_id: Optional[str],
        update_fields: Optional[List[str]] = None,
    ) -> HierarchyModel:
        """Persist changes to an existing entity."""

    @abstractmethod
    def soft_delete(self, entity: HierarchyModel, actor_id: Optional[str]) -> bool:
        """Soft-delete ``entity``; ``False`` if it was already deleted."""

    @abstractmethod
    def has_active_dependents(self, level: HierarchyLevel, entity: HierarchyModel) -> bool:
        """Whether any alive child entity or product references ``entity``."""

    @abstractmethod
    def slug_exists(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        slug: str,
        exclude_id: Any = None,
    ) -> bool:
        """Whether ``slug`` is taken within the slug scope of ``level``."""

    @abstractmethod
    def unique_slug(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        name: str,
        exclude_id: Any = None,
    ) -> str:
        """Slug for ``name`` that is free within the slug scope of ``level``."""
