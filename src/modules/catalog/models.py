"""Catalog hierarchy models.

Manufacturer -> Brand -> Variant -> {PackSize, PackType} and the parallel
Category -> Subcategory taxonomy.

Business rules implemented:
- Within a parent scope no two *alive* siblings share a normalized name
  (partial unique constraint on ``(parent, normalized_name)``).
- ``normalized_name`` is recomputed from ``name`` on every save.
- Soft-deleted rows leave the duplicate-detection scope but stay
  addressable by id.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from modules.catalog.normalizer import normalize
from modules.core.models import AuditedModel

ALIVE = Q(deleted_at__isnull=True)


class ManufacturerStatus(models.TextChoices):
    PENDING_APPROVAL = "pending_approval", "Pending approval"
    ACTIVE = "active", "Active"
    SUSPENDED = "suspended", "Suspended"
    INACTIVE = "inactive", "Inactive"


class BrandStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    DISCONTINUED = "discontinued", "Discontinued"


class PackStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    ARCHIVED = "archived", "Archived"


class TaxonomyStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    ARCHIVED = "archived", "Archived"


class HierarchyModel(AuditedModel):
    """Abstract base for every named catalog entity."""

    name = models.CharField(max_length=255)
    normalized_name = models.CharField(max_length=255, editable=False, db_index=True)

    # statuses under which no new child may be created
    blocking_statuses: frozenset[str] = frozenset()

    class Meta:
        abstract = True
        ordering = ["name"]

    @property
    def accepts_children(self) -> bool:
        return getattr(self, "status", None) not in self.blocking_statuses

    def save(self, *args, **kwargs) -> None:
        self.normalized_name = normalize(self.name)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "name" in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["normalized_name"]
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name


class Manufacturer(HierarchyModel):
    status = models.CharField(
        max_length=20,
        choices=ManufacturerStatus.choices,
        default=ManufacturerStatus.ACTIVE,
    )

    blocking_statuses = frozenset(
        {ManufacturerStatus.INACTIVE, ManufacturerStatus.SUSPENDED}
    )

    class Meta(HierarchyModel.Meta):
        db_table = "manufacturers"
        constraints = [
            models.UniqueConstraint(
                fields=["normalized_name"],
                condition=ALIVE,
                name="manufacturers_alive_name_uniq",
            ),
        ]


class Brand(HierarchyModel):
    manufacturer = models.ForeignKey(
        Manufacturer, on_delete=models.PROTECT, related_name="brands"
    )
    logo_url = models.URLField(max_length=500, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=BrandStatus.choices,
        default=BrandStatus.ACTIVE,
    )

    blocking_statuses = frozenset({BrandStatus.INACTIVE, BrandStatus.DISCONTINUED})

    class Meta(HierarchyModel.Meta):
        db_table = "brands"
        constraints = [
            models.UniqueConstraint(
                fields=["manufacturer", "normalized_name"],
                condition=ALIVE,
                name="brands_alive_name_uniq",
            ),
        ]


class Variant(HierarchyModel):
    brand = models.ForeignKey(Brand, on_delete=models.PROTECT, related_name="variants")
    description = models.TextField(blank=True, default="")

    class Meta(HierarchyModel.Meta):
        db_table = "variants"
        constraints = [
            models.UniqueConstraint(
                fields=["brand", "normalized_name"],
                condition=ALIVE,
                name="variants_alive_name_uniq",
            ),
        ]


class PackSize(HierarchyModel):
    variant = models.ForeignKey(
        Variant, on_delete=models.PROTECT, related_name="pack_sizes"
    )
    status = models.CharField(
        max_length=20,
        choices=PackStatus.choices,
        default=PackStatus.ACTIVE,
    )

    blocking_statuses = frozenset({PackStatus.ARCHIVED})

    class Meta(HierarchyModel.Meta):
        db_table = "pack_sizes"
        constraints = [
            models.UniqueConstraint(
                fields=["variant", "normalized_name"],
                condition=ALIVE,
                name="pack_sizes_alive_name_uniq",
            ),
        ]


class PackType(HierarchyModel):
    variant = models.ForeignKey(
        Variant, on_delete=models.PROTECT, related_name="pack_types"
    )
    status = models.CharField(
        max_length=20,
        choices=PackStatus.choices,
        default=PackStatus.ACTIVE,
    )

    blocking_statuses = frozenset({PackStatus.ARCHIVED})

    class Meta(HierarchyModel.Meta):
        db_table = "pack_types"
        constraints = [
            models.UniqueConstraint(
                fields=["variant", "normalized_name"],
                condition=ALIVE,
                name="pack_types_alive_name_uniq",
            ),
        ]


class Category(HierarchyModel):
    slug = models.SlugField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=TaxonomyStatus.choices,
        default=TaxonomyStatus.ACTIVE,
    )

    blocking_statuses = frozenset({TaxonomyStatus.INACTIVE, TaxonomyStatus.ARCHIVED})

    class Meta(HierarchyModel.Meta):
        db_table = "categories"
        verbose_name_plural = "categories"
        constraints = [
            models.UniqueConstraint(
                fields=["normalized_name"],
                condition=ALIVE,
                name="categories_alive_name_uniq",
            ),
        ]


class Subcategory(HierarchyModel):
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="subcategories"
    )
    slug = models.SlugField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=TaxonomyStatus.choices,
        default=TaxonomyStatus.ACTIVE,
    )

    blocking_statuses = frozenset({TaxonomyStatus.INACTIVE, TaxonomyStatus.ARCHIVED})

    class Meta(HierarchyModel.Meta):
        db_table = "subcategories"
        verbose_name_plural = "subcategories"
        constraints = [
            models.UniqueConstraint(
                fields=["category", "normalized_name"],
                condition=ALIVE,
                name="subcategories_alive_name_uniq",
            ),
            models.UniqueConstraint(
                fields=["category", "slug"],
                condition=ALIVE,
                name="subcategories_alive_slug_uniq",
            ),
        ]
