"""Find-or-create of one hierarchy level within a parent scope.

Resolution of a raw name:

1. ``display = sanitize_display(raw)``; ``key = normalize(display)``.
2. An alive sibling under the parent with the same normalized name is
   returned as *referenced*.
3. Otherwise the batch-local cache is consulted for an entity created earlier
   in the same ingestion run under ``(parent, key)`` (*referenced*).
4. Otherwise the entity is created with ``name = display`` and remembered in
   the batch cache (*created*).

A concurrent writer can win the race between step 2 and step 4; the store's
partial unique constraint rejects our insert, and the resolver re-resolves
against the store instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from django.db import IntegrityError, transaction

from modules.catalog.codes import require_code_segment
from modules.catalog.levels import NAME_BEARING_LEVELS, HierarchyLevel
from modules.catalog.normalizer import normalize, sanitize_display
from modules.catalog.queries import HierarchyQueryOptions
from modules.core.exceptions import (
    ConflictError,
    InactiveParentError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from modules.catalog.models import HierarchyModel
    from modules.catalog.repositories.interfaces import IHierarchyRepository
    from modules.core.context import ServiceContext

CacheKey = Tuple[HierarchyLevel, Optional[str], str]


class ResolutionAction(str, Enum):
    CREATED = "created"
    REFERENCED = "referenced"


@dataclass(frozen=True)
class Resolution:
    level: HierarchyLevel
    entity: HierarchyModel
    action: ResolutionAction

    @property
    def created(self) -> bool:
        return self.action is ResolutionAction.CREATED


class BatchCache:
    """Entities created during one ingestion run, keyed by ``(level, parent, key)``.

    Scoped to a single run and never shared between requests.  Entries are
    grouped per row so a rolled-back row can take its entries with it.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, HierarchyModel] = {}
        self._pending: List[CacheKey] = []

    def __len__(self) -> int:
        return len(self._entries)

    def get(
        self, level: HierarchyLevel, parent_id: Optional[str], key: str
    ) -> Optional[HierarchyModel]:
        return self._entries.get((level, parent_id, key))

    def remember(
        self,
        level: HierarchyLevel,
        parent_id: Optional[str],
        key: str,
        entity: HierarchyModel,
    ) -> None:
        cache_key = (level, parent_id, key)
        self._entries[cache_key] = entity
        self._pending.append(cache_key)

    def begin_row(self) -> None:
        self._pending = []

    def commit_row(self) -> None:
        self._pending = []

    def rollback_row(self) -> None:
        """Forget entries added since ``begin_row``; their rows no longer exist."""
        for cache_key in self._pending:
            self._entries.pop(cache_key, None)
        self._pending = []


class EntityResolver:
    """Turns free-text names (or explicit ids) into hierarchy entities."""

    def __init__(
        self,
        context: ServiceContext,
        repository: IHierarchyRepository,
        batch_cache: Optional[BatchCache] = None,
    ) -> None:
        self._repo = repository
        self._batch = batch_cache
        self._log = context.logger_for("entity_resolver")

    @property
    def batch_cache(self) -> Optional[BatchCache]:
        return self._batch

    def with_batch_cache(self, batch_cache: BatchCache) -> EntityResolver:
        """Copy of this resolver bound to a fresh per-run cache."""
        clone = EntityResolver.__new__(EntityResolver)
        clone._repo = self._repo
        clone._log = self._log
        clone._batch = batch_cache
        return clone

    # ------------------------------------------------------------------
    # Look-ups
    # ------------------------------------------------------------------

    def find_sibling(
        self,
        level: HierarchyLevel,
        name: str,
        parent: Optional[HierarchyModel] = None,
        exclude_id: Any = None,
    ) -> Optional[HierarchyModel]:
        """Alive sibling whose normalized name equals that of ``name``."""
        key = normalize(sanitize_display(name))
        return self._repo.find_active_sibling(level, parent, key, exclude_id=exclude_id)

    def require_parent(
        self, level: HierarchyLevel, parent_id: Any
    ) -> Optional[HierarchyModel]:
        """Load the alive parent of ``level`` by id.

        Raises:
            ValidationError: ``level`` needs a parent and none was given.
            NotFoundError: the parent does not exist or is soft-deleted.
        """
        if level.parent is None:
            return None
        if parent_id is None:
            raise ValidationError(f"A {level.parent.label} is required for a {level.label}.")
        parent = self._repo.get_by_id(level.parent, parent_id)
        if parent is None:
            raise NotFoundError(
                f"{level.parent.label.capitalize()} {parent_id} not found."
            )
        return parent

    def reference(
        self,
        level: HierarchyLevel,
        entity_id: Any,
        parent: Optional[HierarchyModel] = None,
    ) -> Resolution:
        """Resolve an explicitly supplied id (always *referenced*).

        An inactive parent does not block reuse of an existing child.

        Raises:
            NotFoundError: no alive entity with that id.
            ValidationError: the entity does not belong to ``parent``.
        """
        entity = self._repo.get_by_id(
            level, entity_id, HierarchyQueryOptions(include_parent=True)
        )
        if entity is None:
            raise NotFoundError(f"{level.label.capitalize()} {entity_id} not found.")
        if parent is not None and level.parent_field:
            parent_id = getattr(entity, f"{level.parent_field}_id")
            if parent_id != parent.id:
                raise ValidationError(
                    f"{level.label.capitalize()} {entity_id} does not belong to "
                    f"{level.parent.label} {parent.id}."
                )
        return Resolution(level, entity, ResolutionAction.REFERENCED)

    # ------------------------------------------------------------------
    # Find-or-create
    # ------------------------------------------------------------------

    def resolve(
        self,
        level: HierarchyLevel,
        raw_name: Optional[str],
        parent: Optional[HierarchyModel] = None,
        actor_id: Optional[str] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Resolution:
        """Find-or-create ``raw_name`` under ``parent``.

        Raises:
            ValidationError: empty name, a product-code level name without
                letters or digits, or missing parent for a child level.
            NotFoundError: the parent is soft-deleted.
            InactiveParentError: creation needed under an inactive parent.
            ConflictError: the store rejected the insert and no winner was found.
        """
        display = sanitize_display(raw_name)
        if not display:
            raise ValidationError(f"{level.label.capitalize()} name must not be empty.")
        if level in NAME_BEARING_LEVELS:
            require_code_segment(level.label, display)
        key = normalize(display)
        self._check_parent_scope(level, parent)
        parent_id = str(parent.id) if parent is not None else None

        existing = self._repo.find_active_sibling(level, parent, key)
        if existing is not None:
            return Resolution(level, existing, ResolutionAction.REFERENCED)

        if self._batch is not None:
            cached = self._batch.get(level, parent_id, key)
            if cached is not None:
                return Resolution(level, cached, ResolutionAction.REFERENCED)

        if parent is not None and not parent.accepts_children:
            raise InactiveParentError(
                f"Cannot create {level.label} '{display}' under "
                f"{parent.status} {level.parent.label} '{parent.name}'."
            )

        try:
            with transaction.atomic():
                entity = self._repo.create(
                    level, parent, actor_id, name=display, **(defaults or {})
                )
        except IntegrityError as exc:
            winner = self._repo.find_active_sibling(level, parent, key)
            if winner is None:
                raise ConflictError(
                    f"{level.label.capitalize()} '{display}' could not be created: {exc}"
                ) from exc
            self._log.info(
                "resolver.lost_race",
                level=level.value,
                entity_id=str(winner.id),
                name=winner.name,
            )
            return Resolution(level, winner, ResolutionAction.REFERENCED)

        if self._batch is not None:
            self._batch.remember(level, parent_id, key, entity)
        self._log.info(
            "resolver.entity_created",
            level=level.value,
            entity_id=str(entity.id),
            name=entity.name,
            parent_id=parent_id,
        )
        return Resolution(level, entity, ResolutionAction.CREATED)

    @staticmethod
    def _check_parent_scope(
        level: HierarchyLevel, parent: Optional[HierarchyModel]
    ) -> None:
        if level.parent is None:
            return
        if parent is None:
            raise ValidationError(
                f"A {level.parent.label} is required to resolve a {level.label}."
            )
        if parent.is_deleted:
            raise NotFoundError(
                f"{level.parent.label.capitalize()} {parent.id} not found."
            )
