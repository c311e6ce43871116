"""Django ORM implementation of the hierarchy repository.

Error handling follows the Null Object pattern for reads: look-ups return
``None`` for missing or malformed ids.  Writes let ``IntegrityError`` from
the partial unique constraints propagate; the resolver and services
translate it.
"""

from __future__ import annotations

from typing import Any, List, Optional

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError

from modules.catalog.levels import HierarchyLevel
from modules.catalog.models import HierarchyModel
from modules.catalog.normalizer import slug_for
from modules.catalog.queries import DEFAULT_OPTIONS, HierarchyQueryOptions
from modules.catalog.repositories.interfaces import IHierarchyRepository

logger = structlog.get_logger(__name__)


class HierarchyDjangoRepository(IHierarchyRepository):
    """Concrete hierarchy repository backed by Django ORM."""

    def get_by_id(
        self,
        level: HierarchyLevel,
        id: Any,
        options: Optional[HierarchyQueryOptions] = None,
    ) -> Optional[HierarchyModel]:
        """Retrieve an entity by primary key.

        Returns ``None`` for non-existent, soft-deleted (unless
        ``include_deleted``) or invalid IDs.
        """
        options = options or DEFAULT_OPTIONS
        queryset = level.model.objects.all()
        if not options.include_deleted:
            queryset = queryset.alive()
        related = options.select_related(level)
        if related:
            queryset = queryset.select_related(*related)
        try:
            return queryset.filter(id=id).first()
        except (ValueError, DjangoValidationError):
            return None

    def list_active_children(
        self, level: HierarchyLevel, parent: Optional[HierarchyModel]
    ) -> List[HierarchyModel]:
        return list(self._scope(level, parent))

    def find_active_sibling(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        normalized_name: str,
        exclude_id: Any = None,
    ) -> Optional[HierarchyModel]:
        queryset = self._scope(level, parent).filter(normalized_name=normalized_name)
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.first()

    def create(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        actor_id: Optional[str],
        **fields: Any,
    ) -> HierarchyModel:
        if level.parent_field:
            fields[level.parent_field] = parent
        if level.meta.has_slug and not fields.get("slug"):
            fields["slug"] = self.unique_slug(level, parent, fields["name"])
        entity = level.model(**fields)
        entity.stamp(actor_id)
        entity.save()
        logger.info(
            "hierarchy.created",
            level=level.value,
            entity_id=str(entity.id),
            name=entity.name,
        )
        return entity

    def save(
        self,
        entity: HierarchyModel,
        actor_id: Optional[str],
        update_fields: Optional[List[str]] = None,
    ) -> HierarchyModel:
        entity.stamp(actor_id)
        if update_fields is not None:
            update_fields = list(update_fields) + ["updated_by"]
        entity.save(update_fields=update_fields)
        logger.info(
            "hierarchy.saved",
            model=entity._meta.model_name,
            entity_id=str(entity.id),
        )
        return entity

    def soft_delete(self, entity: HierarchyModel, actor_id: Optional[str]) -> bool:
        count, _ = entity.delete(deleted_by=actor_id)
        if count:
            logger.info(
                "hierarchy.soft_deleted",
                model=entity._meta.model_name,
                entity_id=str(entity.id),
            )
        return bool(count)

    def has_active_dependents(
        self, level: HierarchyLevel, entity: HierarchyModel
    ) -> bool:
        return any(
            getattr(entity, relation).alive().exists()
            for relation in level.meta.children
        )

    def slug_exists(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        slug: str,
        exclude_id: Any = None,
    ) -> bool:
        # category slugs are globally unique (deleted rows included);
        # subcategory slugs are unique among alive siblings
        if level.parent is None:
            queryset = level.model.objects.filter(slug=slug)
        else:
            queryset = self._scope(level, parent).filter(slug=slug)
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.exists()

    def unique_slug(
        self,
        level: HierarchyLevel,
        parent: Optional[HierarchyModel],
        name: str,
        exclude_id: Any = None,
    ) -> str:
        base = slug_for(name) or level.value.replace("_", "-")
        slug, suffix = base, 2
        while self.slug_exists(level, parent, slug, exclude_id=exclude_id):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scope(level: HierarchyLevel, parent: Optional[HierarchyModel]):
        queryset = level.model.objects.alive()
        if level.parent_field:
            queryset = queryset.filter(**{level.parent_field: parent})
        return queryset
