"""Hierarchy service layer (Use Cases).

Interactive create / update / delete / read of every catalog level,
delegating persistence to the injected ``IHierarchyRepository``.

Business rules enforced here:
- No two alive siblings share a normalized name (``ConflictError``).
- A missing or soft-deleted parent is ``NotFoundError``; an inactive parent
  blocks creation with ``InactiveParentError``.
- Renames of brand / variant / pack size / pack type run through the
  ``CascadeUpdater`` in the same transaction as the other field changes.
- An entity referenced by alive children or products cannot be deleted.
- Asset uploads happen before the transaction opens; a failed upload is a
  warning, and the entity is persisted without the asset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from django.db import transaction

from modules.catalog.codes import require_code_segment
from modules.catalog.levels import NAME_BEARING_LEVELS, HierarchyLevel
from modules.catalog.normalizer import normalize, sanitize_display
from modules.catalog.queries import HISTORICAL, HierarchyQueryOptions
from modules.core.exceptions import (
    CatalogError,
    ConflictError,
    InactiveParentError,
    NotFoundError,
    StorageError,
    ValidationError,
    translate_persistence_errors,
)
from modules.core.models import AuditAction

if TYPE_CHECKING:
    from modules.catalog.dtos import CreateEntityDTO, UpdateEntityDTO
    from modules.catalog.models import HierarchyModel
    from modules.catalog.repositories.interfaces import IHierarchyRepository
    from modules.catalog.resolver import EntityResolver
    from modules.core.audit import IAuditSink
    from modules.core.cache import CacheInvalidator
    from modules.core.context import ServiceContext
    from modules.core.storage import IBlobStorage, UploadedAsset
    from modules.products.cascade import CascadeResult, CascadeUpdater

# instance attributes an update may touch besides the edited fields
_RESTORED_ON_FAILURE = ("name", "normalized_name", "slug", "updated_by", "updated_at")


@dataclass(frozen=True)
class HierarchyResult:
    level: HierarchyLevel
    entity: HierarchyModel
    warnings: Tuple[str, ...] = ()
    cascade: Optional[CascadeResult] = field(default=None)


class HierarchyService:
    """Application service for hierarchy use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        context: ServiceContext,
        repository: IHierarchyRepository,
        resolver: EntityResolver,
        cascade: CascadeUpdater,
        invalidator: CacheInvalidator,
        audit: IAuditSink,
        storage: Optional[IBlobStorage] = None,
    ) -> None:
        self._repo = repository
        self._resolver = resolver
        self._cascade = cascade
        self._invalidator = invalidator
        self._audit = audit
        self._storage = storage
        self._log = context.logger_for("hierarchy_service")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(
        self,
        level: HierarchyLevel,
        dto: CreateEntityDTO,
        actor_id: Optional[str] = None,
        logo: Optional[UploadedAsset] = None,
    ) -> HierarchyResult:
        """Create a new entity at ``level``.

        Raises:
            ValidationError: missing parent id, unknown status, a field the
                level does not carry, or a product-code level name without
                letters or digits.
            NotFoundError: the parent does not exist or is soft-deleted.
            InactiveParentError: the parent does not accept new children.
            ConflictError: an alive sibling already has the name.
        """
        display = sanitize_display(dto.name)
        if level in NAME_BEARING_LEVELS:
            require_code_segment(level.label, display)
        log = self._log.bind(level=level.value, name=display)
        fields = self._editable_fields(
            level, status=dto.status, description=dto.description, logo_url=dto.logo_url
        )
        warnings: List[str] = []
        if logo is not None:
            logo_url = self._upload_logo(level, logo, warnings)
            if logo_url:
                fields["logo_url"] = logo_url

        with translate_persistence_errors(f"Creating {level.label} '{display}'"):
            with transaction.atomic():
                parent = self._resolver.require_parent(level, dto.parent_id)
                if parent is not None and not parent.accepts_children:
                    raise InactiveParentError(
                        f"{level.parent.label.capitalize()} '{parent.name}' is "
                        f"{parent.status} and does not accept new {level.plural}."
                    )
                duplicate = self._resolver.find_sibling(level, display, parent)
                if duplicate is not None:
                    log.warning("hierarchy.duplicate_name", existing_id=str(duplicate.id))
                    raise ConflictError(
                        f"{level.label.capitalize()} '{duplicate.name}' already exists.",
                        existing_id=str(duplicate.id),
                    )
                entity = self._repo.create(
                    level, parent, actor_id, name=display, **fields
                )
                self._audit.record(
                    AuditAction.CREATE,
                    level.value,
                    str(entity.id),
                    actor_id,
                    {"name": entity.name},
                )
                self._invalidator.invalidate_after_commit(level.value)

        log.info("hierarchy.entity_created", entity_id=str(entity.id))
        return HierarchyResult(level, entity, tuple(warnings))

    def update(
        self,
        level: HierarchyLevel,
        id: Any,
        dto: UpdateEntityDTO,
        actor_id: Optional[str] = None,
        logo: Optional[UploadedAsset] = None,
    ) -> HierarchyResult:
        """Apply the supplied fields; a rename may cascade to products.

        Raises:
            NotFoundError: the entity does not exist or is soft-deleted.
            ValidationError: unknown status or unsupported field.
            ConflictError: the new name is taken, or the cascade would make
                product codes collide.  Nothing is committed.
        """
        entity = self._repo.get_by_id(level, id, HierarchyQueryOptions(include_parent=True))
        if entity is None:
            raise NotFoundError(f"{level.label.capitalize()} {id} not found.")
        log = self._log.bind(level=level.value, entity_id=str(entity.id))

        fields = self._editable_fields(
            level, status=dto.status, description=dto.description, logo_url=dto.logo_url
        )
        warnings: List[str] = []
        if logo is not None:
            logo_url = self._upload_logo(level, logo, warnings)
            if logo_url:
                fields["logo_url"] = logo_url

        previous = {
            name: getattr(entity, name)
            for name in (*fields, *_RESTORED_ON_FAILURE)
            if hasattr(entity, name)
        }
        try:
            with translate_persistence_errors(f"Updating {level.label} {entity.id}"):
                with transaction.atomic():
                    cascade_result = self._apply_update(
                        level, entity, fields, dto.name, actor_id
                    )
        except CatalogError:
            # the row was rolled back; keep the instance in step with it
            for name, value in previous.items():
                setattr(entity, name, value)
            raise

        log.info(
            "hierarchy.entity_updated",
            fields=sorted(fields),
            renamed=dto.name is not None,
        )
        return HierarchyResult(level, entity, tuple(warnings), cascade_result)

    def delete(self, level: HierarchyLevel, id: Any, actor_id: Optional[str] = None) -> None:
        """Soft-delete an entity that nothing alive depends on.

        Raises:
            NotFoundError: the entity does not exist or is already deleted.
            ConflictError: alive children or products still reference it.
        """
        entity = self._repo.get_by_id(level, id)
        if entity is None:
            raise NotFoundError(f"{level.label.capitalize()} {id} not found.")

        with translate_persistence_errors(f"Deleting {level.label} {entity.id}"):
            with transaction.atomic():
                if self._repo.has_active_dependents(level, entity):
                    raise ConflictError(
                        f"{level.label.capitalize()} '{entity.name}' is still "
                        "referenced by active entities."
                    )
                self._repo.soft_delete(entity, actor_id)
                self._audit.record(
                    AuditAction.DELETE,
                    level.value,
                    str(entity.id),
                    actor_id,
                    {"name": entity.name},
                )
                self._invalidator.invalidate_after_commit(level.value)
        self._log.info("hierarchy.entity_deleted", level=level.value, entity_id=str(entity.id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, level: HierarchyLevel, id: Any) -> HierarchyModel:
        """Retrieve an entity by id, soft-deleted ones included.

        Raises:
            NotFoundError: no row with that id.
        """
        entity = self._repo.get_by_id(level, id, HISTORICAL)
        if entity is None:
            raise NotFoundError(f"{level.label.capitalize()} {id} not found.")
        return entity

    def list_children(
        self, level: HierarchyLevel, parent_id: Any = None
    ) -> List[HierarchyModel]:
        """Alive entities of ``level`` under the given parent."""
        parent = self._resolver.require_parent(level, parent_id)
        return self._repo.list_active_children(level, parent)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply_update(
        self,
        level: HierarchyLevel,
        entity: HierarchyModel,
        fields: dict[str, Any],
        new_name: Optional[str],
        actor_id: Optional[str],
    ) -> Optional[CascadeResult]:
        cascade_result = None
        if fields:
            for name, value in fields.items():
                setattr(entity, name, value)
            self._repo.save(entity, actor_id, update_fields=list(fields))
            self._audit.record(
                AuditAction.UPDATE,
                level.value,
                str(entity.id),
                actor_id,
                {"fields": sorted(fields)},
            )
        if new_name is not None and sanitize_display(new_name) != entity.name:
            if level in NAME_BEARING_LEVELS:
                cascade_result = self._cascade.rename(level, entity, new_name, actor_id)
            else:
                self._rename(level, entity, new_name, actor_id)
        self._invalidator.invalidate_after_commit(level.value)
        return cascade_result

    def _rename(
        self,
        level: HierarchyLevel,
        entity: HierarchyModel,
        new_name: str,
        actor_id: Optional[str],
    ) -> None:
        display = sanitize_display(new_name)
        parent = getattr(entity, level.parent_field) if level.parent_field else None
        duplicate = self._resolver.find_sibling(level, display, parent, exclude_id=entity.id)
        if duplicate is not None:
            raise ConflictError(
                f"{level.label.capitalize()} '{duplicate.name}' already exists.",
                existing_id=str(duplicate.id),
            )
        old_name = entity.name
        entity.name = display
        update_fields = ["name"]
        if level.meta.has_slug and normalize(display) != normalize(old_name):
            entity.slug = self._repo.unique_slug(
                level, parent, display, exclude_id=entity.id
            )
            update_fields.append("slug")
        self._repo.save(entity, actor_id, update_fields=update_fields)
        self._audit.record(
            AuditAction.RENAME,
            level.value,
            str(entity.id),
            actor_id,
            {"old_name": old_name, "new_name": display},
        )

    def _editable_fields(
        self,
        level: HierarchyLevel,
        status: Optional[str] = None,
        description: Optional[str] = None,
        logo_url: Optional[str] = None,
    ) -> dict[str, Any]:
        model = level.model
        fields: dict[str, Any] = {}
        supplied = {"status": status, "description": description, "logo_url": logo_url}
        for name, value in supplied.items():
            if value is None:
                continue
            if not self._has_field(model, name):
                raise ValidationError(f"A {level.label} has no {name.replace('_', ' ')}.")
            fields[name] = value
        if "status" in fields:
            allowed = [choice for choice, _ in model._meta.get_field("status").choices]
            if fields["status"] not in allowed:
                raise ValidationError(
                    f"Invalid {level.label} status '{fields['status']}'; "
                    f"expected one of {', '.join(allowed)}."
                )
        return fields

    def _upload_logo(
        self, level: HierarchyLevel, logo: UploadedAsset, warnings: List[str]
    ) -> str:
        if not self._has_field(level.model, "logo_url"):
            raise ValidationError(f"A {level.label} has no logo.")
        if self._storage is None:
            warnings.append("Logo upload is not configured; saved without a logo.")
            return ""
        try:
            return self._storage.upload(logo, folder=level.plural, tags=(level.value, "logo"))
        except StorageError as exc:
            self._log.warning("hierarchy.logo_upload_failed", level=level.value, error=exc.message)
            warnings.append(f"Logo upload failed: {exc.message}")
            return ""

    @staticmethod
    def _has_field(model, name: str) -> bool:
        return any(f.name == name for f in model._meta.get_fields())
