"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: look-ups return ``None``
instead of raising, and the Service Layer decides how to translate a
missing entity.  ``IntegrityError`` from the partial unique constraints
propagates to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from modules.catalog.levels import HierarchyLevel
from modules.catalog.models import HierarchyModel
from modules.products.models import Product
from modules.products.queries import (
    DEFAULT_OPTIONS,
    HIERARCHY_RELATIONS,
    ProductQueryOptions,
)
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(
        self, id: Any, options: Optional[ProductQueryOptions] = None
    ) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent, soft-deleted (unless
        ``include_deleted``) or invalid IDs.
        """
        options = options or DEFAULT_OPTIONS
        queryset = Product.objects.all()
        if not options.include_deleted:
            queryset = queryset.alive()
        related = options.select_related()
        if related:
            queryset = queryset.select_related(*related)
        try:
            return queryset.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List alive products with optional Django ORM look-ups.

        Examples of valid filters::

            {"status": "live"}
            {"brand_id": "0190..."}
            {"name__icontains": "indomie"}
        """
        queryset = Product.objects.alive().select_related(*HIERARCHY_RELATIONS)
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(
        self,
        entity: Product,
        actor_id: Optional[str] = None,
        update_fields: Optional[List[str]] = None,
    ) -> Product:
        """Persist (create or update) a product."""
        entity.stamp(actor_id)
        if update_fields is not None:
            update_fields = list(update_fields) + ["updated_by"]
        entity.save(update_fields=update_fields)
        logger.info(
            "product.saved",
            product_id=str(entity.id),
            sku=entity.sku,
        )
        return entity

    @transaction.atomic
    def delete(self, id: Any, actor_id: Optional[str] = None) -> bool:
        """Soft-delete a product by ID.

        Returns ``True`` if the product was found and soft-deleted,
        ``False`` if no alive product exists with the given ID.
        """
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete(deleted_by=actor_id)
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def find_conflicts(
        self,
        skus: Iterable[str],
        names: Iterable[str],
        exclude_ids: Iterable[Any] = (),
    ) -> List[Product]:
        skus, names = list(skus), list(names)
        if not skus and not names:
            return []
        queryset = Product.objects.alive().filter(
            Q(sku__in=skus) | Q(name__in=names)
        )
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            queryset = queryset.exclude(id__in=exclude_ids)
        return list(queryset)

    def list_alive_for(
        self, level: HierarchyLevel, entity: HierarchyModel
    ) -> List[Product]:
        return list(
            Product.objects.alive()
            .filter(**{level.value: entity})
            .select_related(*HIERARCHY_RELATIONS)
            .order_by("created_at", "id")
        )
