"""Product model with derived name / SKU.

Business rules implemented:
- ``name`` and ``sku`` are derived from brand / variant / pack size / pack
  type names (see ``modules.catalog.codes``) and are not edited directly.
- SKU and name are unique among alive products (partial unique constraints);
  a soft-deleted product keeps its codes without blocking new ones.
- Price is optional but never negative; discount is a percentage 0..100.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from modules.catalog.models import (
    ALIVE,
    Brand,
    Category,
    Manufacturer,
    PackSize,
    PackType,
    Subcategory,
    Variant,
)
from modules.core.models import AuditedModel


class ProductStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    QUEUE = "queue", "Queue"
    LIVE = "live", "Live"
    ARCHIVED = "archived", "Archived"


class Product(AuditedModel):
    """Sellable item at the leaf of the catalog hierarchy."""

    name = models.CharField(max_length=512)
    sku = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.DRAFT,
    )
    images = models.JSONField(default=list, blank=True)
    thumbnail_url = models.URLField(max_length=500, blank=True, default="")

    manufacturer = models.ForeignKey(
        Manufacturer, on_delete=models.PROTECT, related_name="products"
    )
    brand = models.ForeignKey(Brand, on_delete=models.PROTECT, related_name="products")
    variant = models.ForeignKey(
        Variant, on_delete=models.PROTECT, related_name="products"
    )
    pack_size = models.ForeignKey(
        PackSize, on_delete=models.PROTECT, related_name="products"
    )
    pack_type = models.ForeignKey(
        PackType, on_delete=models.PROTECT, related_name="products"
    )
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="products"
    )
    subcategory = models.ForeignKey(
        Subcategory,
        on_delete=models.PROTECT,
        related_name="products",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["sku"], condition=ALIVE, name="products_alive_sku_uniq"
            ),
            models.UniqueConstraint(
                fields=["name"], condition=ALIVE, name="products_alive_name_uniq"
            ),
            models.CheckConstraint(
                condition=Q(price__isnull=True) | Q(price__gte=0),
                name="products_price_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(discount__isnull=True)
                | (Q(discount__gte=0) & Q(discount__lte=100)),
                name="products_discount_percentage",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
