"""Atomic propagation of a hierarchy rename to the products derived from it.

A rename of a brand, variant, pack size or pack type and the regeneration
of ``name`` / ``sku`` on every alive product under it commit together or
not at all.  Soft-deleted products keep their historical codes.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from django.db import DatabaseError, IntegrityError, transaction

from modules.catalog.codes import CodeGenerator, require_code_segment
from modules.catalog.levels import NAME_BEARING_LEVELS, HierarchyLevel
from modules.catalog.normalizer import normalize, sanitize_display
from modules.core.exceptions import (
    CatalogError,
    ConflictError,
    TransactionError,
    ValidationError,
)
from modules.core.models import AuditAction

if TYPE_CHECKING:
    from modules.catalog.models import HierarchyModel
    from modules.catalog.repositories.interfaces import IHierarchyRepository
    from modules.core.audit import IAuditSink
    from modules.core.cache import CacheInvalidator
    from modules.core.context import ServiceContext
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository


@dataclass(frozen=True)
class ProductCodeChange:
    product_id: str
    old_sku: str
    new_sku: str
    old_name: str
    new_name: str


@dataclass(frozen=True)
class CascadeResult:
    level: HierarchyLevel
    entity: HierarchyModel
    old_name: str
    new_name: str
    changes: Tuple[ProductCodeChange, ...] = field(default=())

    @property
    def updated_products(self) -> int:
        return len(self.changes)


class CascadeUpdater:
    """Renames one hierarchy entity and regenerates its products' codes."""

    def __init__(
        self,
        context: ServiceContext,
        hierarchy_repository: IHierarchyRepository,
        product_repository: IProductRepository,
        invalidator: CacheInvalidator,
        audit: IAuditSink,
        code_generator: Optional[CodeGenerator] = None,
    ) -> None:
        self._hierarchy = hierarchy_repository
        self._products = product_repository
        self._invalidator = invalidator
        self._audit = audit
        self._codes = code_generator or CodeGenerator()
        self._levels = context.settings.cascade_levels
        self._log = context.logger_for("cascade_updater")

    def cascades(self, level: HierarchyLevel) -> bool:
        """Whether renaming ``level`` regenerates product codes."""
        return level in NAME_BEARING_LEVELS and level.value in self._levels

    def rename(
        self,
        level: HierarchyLevel,
        entity: HierarchyModel,
        new_name: str,
        actor_id: Optional[str] = None,
    ) -> CascadeResult:
        """Rename ``entity`` and regenerate every dependent alive product.

        Raises:
            ValidationError: ``new_name`` is empty or has no letters or digits.
            ConflictError: an alive sibling already has the name, or the new
                codes collide with another product.  Nothing is committed.
            TransactionError: the store failed; nothing is committed.
        """
        display = sanitize_display(new_name)
        if not display:
            raise ValidationError(f"{level.label.capitalize()} name must not be empty.")
        require_code_segment(level.label, display)
        old_name = entity.name
        log = self._log.bind(
            level=level.value, entity_id=str(entity.id), old_name=old_name, new_name=display
        )

        try:
            with transaction.atomic():
                changes = self._apply(level, entity, display, actor_id)
        except IntegrityError as exc:
            self._restore(entity, old_name)
            log.warning("cascade.conflict", error=str(exc))
            raise ConflictError(
                f"Renaming {level.label} '{old_name}' to '{display}' conflicts "
                f"with existing data: {exc}"
            ) from exc
        except DatabaseError as exc:
            self._restore(entity, old_name)
            log.error("cascade.transaction_failed", error=str(exc))
            raise TransactionError(
                f"Renaming {level.label} '{old_name}' failed: {exc}"
            ) from exc
        except CatalogError as exc:
            self._restore(entity, old_name)
            log.warning("cascade.aborted", code=exc.code, error=exc.message)
            raise

        self._audit.record(
            AuditAction.RENAME,
            level.value,
            str(entity.id),
            actor_id,
            {
                "old_name": old_name,
                "new_name": display,
                "updated_products": [change.product_id for change in changes],
            },
        )
        self._invalidator.invalidate_after_commit(level.value, "product")
        log.info("cascade.completed", updated_products=len(changes))
        return CascadeResult(level, entity, old_name, display, tuple(changes))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply(
        self,
        level: HierarchyLevel,
        entity: HierarchyModel,
        display: str,
        actor_id: Optional[str],
    ) -> List[ProductCodeChange]:
        parent = getattr(entity, level.parent_field) if level.parent_field else None
        duplicate = self._hierarchy.find_active_sibling(
            level, parent, normalize(display), exclude_id=entity.id
        )
        if duplicate is not None:
            raise ConflictError(
                f"{level.label.capitalize()} '{duplicate.name}' already exists "
                f"under this {level.parent.label if level.parent else 'catalog'}."
            )

        entity.name = display
        self._hierarchy.save(entity, actor_id, update_fields=["name"])

        if not self.cascades(level):
            return []

        products = self._products.list_alive_for(level, entity)
        planned = [(product, self._derive(level, entity, product)) for product in products]
        self._check_collisions(planned)

        changes: List[ProductCodeChange] = []
        for product, (name, sku) in planned:
            change = ProductCodeChange(
                product_id=str(product.id),
                old_sku=product.sku,
                new_sku=sku,
                old_name=product.name,
                new_name=name,
            )
            product.name, product.sku = name, sku
            self._products.save(product, actor_id, update_fields=["name", "sku"])
            changes.append(change)
        return changes

    def _derive(
        self, level: HierarchyLevel, entity: HierarchyModel, product: Product
    ) -> Tuple[str, str]:
        chain = {
            name_level: getattr(product, name_level.value)
            for name_level in NAME_BEARING_LEVELS
        }
        chain[level] = entity
        return self._codes.derive(
            chain[HierarchyLevel.BRAND],
            chain[HierarchyLevel.VARIANT],
            chain[HierarchyLevel.PACK_SIZE],
            chain[HierarchyLevel.PACK_TYPE],
        )

    def _check_collisions(self, planned: List[Tuple[Product, Tuple[str, str]]]) -> None:
        skus = Counter(sku for _, (_, sku) in planned)
        names = Counter(name for _, (name, _) in planned)
        clashing = [sku for sku, count in skus.items() if count > 1]
        clashing += [name for name, count in names.items() if count > 1]
        if clashing:
            raise ConflictError(
                f"Rename would give several products the same code: {', '.join(clashing)}",
                codes=clashing,
            )

        conflicts = self._products.find_conflicts(
            skus.keys(), names.keys(), exclude_ids=[product.id for product, _ in planned]
        )
        if conflicts:
            taken = sorted({product.sku for product in conflicts})
            raise ConflictError(
                f"Rename would collide with existing products: {', '.join(taken)}",
                skus=taken,
            )

    @staticmethod
    def _restore(entity: HierarchyModel, old_name: str) -> None:
        entity.name = old_name
        entity.normalized_name = normalize(old_name)
