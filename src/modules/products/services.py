"""Product service layer (Use Cases).

Orchestrates product use-cases, delegating persistence to the injected
``IProductRepository`` and row processing to the ``IngestionPipeline``.

Business rules enforced here:
- Name and SKU are derived, never edited directly; an explicit change of
  brand / variant / pack ids regenerates both, with collision checks.
- A product's chain must be consistent (pack size / pack type belong to the
  variant, the variant to the brand, the subcategory to the category).
- Asset uploads precede the product transaction; a failed upload is a
  warning and the product is persisted without that asset.
- Soft delete via repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from django.db import transaction
from pydantic import ValidationError as PydanticValidationError

from modules.catalog.codes import CodeGenerator
from modules.catalog.levels import HierarchyLevel
from modules.core.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
    translate_persistence_errors,
)
from modules.core.models import AuditAction
from modules.products.csv_import import read_rows
from modules.products.ingestion import validation_message
from modules.products.models import ProductStatus
from modules.products.queries import WITH_HIERARCHY, ProductQueryOptions

if TYPE_CHECKING:
    from modules.catalog.models import HierarchyModel
    from modules.catalog.repositories.interfaces import IHierarchyRepository
    from modules.core.audit import IAuditSink
    from modules.core.cache import CacheInvalidator
    from modules.core.context import ServiceContext
    from modules.core.storage import IBlobStorage, UploadedAsset
    from modules.products.csv_import import CsvSource
    from modules.products.dtos import (
        BulkIngestionSummaryDTO,
        CreateProductDTO,
        UpdateProductDTO,
    )
    from modules.products.ingestion import IngestionPipeline
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

_IDENTIFIER_LEVELS = (
    HierarchyLevel.BRAND,
    HierarchyLevel.VARIANT,
    HierarchyLevel.PACK_SIZE,
    HierarchyLevel.PACK_TYPE,
)


@dataclass(frozen=True)
class ProductResult:
    product: Product
    warnings: Tuple[str, ...] = field(default=())


class ProductService:
    """Application service for Product use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        context: ServiceContext,
        repository: IProductRepository,
        hierarchy_repository: IHierarchyRepository,
        pipeline: IngestionPipeline,
        invalidator: CacheInvalidator,
        audit: IAuditSink,
        storage: Optional[IBlobStorage] = None,
        code_generator: Optional[CodeGenerator] = None,
    ) -> None:
        self._repo = repository
        self._hierarchy = hierarchy_repository
        self._pipeline = pipeline
        self._invalidator = invalidator
        self._audit = audit
        self._storage = storage
        self._codes = code_generator or CodeGenerator()
        self._log = context.logger_for("product_service")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_product(
        self,
        dto: CreateProductDTO,
        actor_id: Optional[str] = None,
        thumbnail: Optional[UploadedAsset] = None,
        images: Sequence[UploadedAsset] = (),
    ) -> ProductResult:
        """Create a product from hierarchy ids.

        Uploads run first, outside any transaction; the product row is then
        written through the ingestion pipeline as a single row.

        Raises:
            ValidationError, NotFoundError, InactiveParentError,
            ConflictError, TransactionError
        """
        warnings: List[str] = []
        image_urls = list(dto.images)
        for asset in images:
            url = self._upload(asset, "products", warnings)
            if url:
                image_urls.append(url)
        try:
            row = dto.to_row(images=image_urls)
        except PydanticValidationError as exc:
            raise ValidationError(validation_message(exc)) from exc
        if thumbnail is not None:
            url = self._upload(thumbnail, "products/thumbnails", warnings)
            if url:
                row = row.model_copy(update={"thumbnail": url})

        outcome = self._pipeline.ingest_one(row, actor_id)
        product = outcome.product
        self._log.info("product.created", product_id=str(product.id), sku=product.sku)
        return ProductResult(product, tuple(warnings + outcome.warnings))

    def update_product(
        self, id: Any, dto: UpdateProductDTO, actor_id: Optional[str] = None
    ) -> Product:
        """Update an existing product with the supplied fields.

        Raises:
            NotFoundError: the product (or a referenced entity) does not exist.
            ValidationError: unknown status or an inconsistent hierarchy chain.
            ConflictError: the regenerated name / SKU is already taken.
        """
        product = self._repo.get_by_id(id, WITH_HIERARCHY)
        if not product:
            raise NotFoundError(f"Product {id} not found.")

        log = self._log.bind(product_id=str(product.id))
        with translate_persistence_errors(f"Updating product {product.id}"):
            with transaction.atomic():
                changed = self._apply_fields(product, dto)
                if dto.changes_identifiers:
                    changed += self._apply_identifiers(product, dto)
                changed += self._apply_taxonomy(product, dto)
                if not changed:
                    return product
                self._repo.save(product, actor_id, update_fields=changed)
                self._audit.record(
                    AuditAction.UPDATE,
                    "product",
                    str(product.id),
                    actor_id,
                    {"fields": sorted(set(changed))},
                )
                self._invalidator.invalidate_after_commit("product")

        log.info("product.updated", fields=sorted(set(changed)))
        return product

    def delete_product(self, id: Any, actor_id: Optional[str] = None) -> None:
        """Soft-delete a product.

        Raises:
            NotFoundError: if the product does not exist.
        """
        with transaction.atomic():
            if not self._repo.delete(id, actor_id):
                raise NotFoundError(f"Product {id} not found.")
            self._audit.record(AuditAction.DELETE, "product", str(id), actor_id)
            self._invalidator.invalidate_after_commit("product")
        self._log.info("product.soft_deleted", product_id=str(id))

    def bulk_import(
        self, source: CsvSource, actor_id: Optional[str] = None
    ) -> BulkIngestionSummaryDTO:
        """Read a CSV upload and ingest every row.

        Raises:
            ValidationError: unreadable file, no rows, or too many rows.
        """
        rows = read_rows(source)
        return self._pipeline.ingest(rows, actor_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_products(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """Return alive products, optionally filtered."""
        return self._repo.list(filters)

    def get_product(self, id: Any, include_deleted: bool = False) -> Product:
        """Retrieve a single product by ID.

        Raises:
            NotFoundError: if the product does not exist.
        """
        options = ProductQueryOptions(
            include_hierarchy=True,
            include_taxonomy=True,
            include_deleted=include_deleted,
        )
        product = self._repo.get_by_id(id, options)
        if not product:
            raise NotFoundError(f"Product {id} not found.")
        return product

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_fields(product: Product, dto: UpdateProductDTO) -> List[str]:
        if dto.status is not None and dto.status not in ProductStatus.values:
            raise ValidationError(
                f"Invalid product status '{dto.status}'; expected one of "
                f"{', '.join(ProductStatus.values)}."
            )
        changed = []
        for name in ("price", "discount", "description", "status", "thumbnail_url"):
            value = getattr(dto, name)
            if value is not None and value != getattr(product, name):
                setattr(product, name, value)
                changed.append(name)
        if dto.images is not None and list(dto.images) != list(product.images or []):
            product.images = list(dto.images)
            changed.append("images")
        return changed

    def _apply_identifiers(self, product: Product, dto: UpdateProductDTO) -> List[str]:
        chain = {
            level: self._load(level, getattr(dto, f"{level.value}_id"))
            or getattr(product, level.value)
            for level in _IDENTIFIER_LEVELS
        }
        brand = chain[HierarchyLevel.BRAND]
        variant = chain[HierarchyLevel.VARIANT]
        if variant.brand_id != brand.id:
            raise ValidationError(f"Variant '{variant.name}' does not belong to brand '{brand.name}'.")
        for level in (HierarchyLevel.PACK_SIZE, HierarchyLevel.PACK_TYPE):
            if chain[level].variant_id != variant.id:
                raise ValidationError(
                    f"{level.label.capitalize()} '{chain[level].name}' does not "
                    f"belong to variant '{variant.name}'."
                )

        name, sku = self._codes.derive(*(chain[level] for level in _IDENTIFIER_LEVELS))
        if (name, sku) != (product.name, product.sku):
            if self._repo.find_conflicts([sku], [name], exclude_ids=[product.id]):
                raise ConflictError(
                    f'Product with name "{name}" or SKU "{sku}" already exists',
                    sku=sku,
                )

        changed = []
        for level, entity in chain.items():
            if getattr(product, f"{level.value}_id") != entity.id:
                setattr(product, level.value, entity)
                changed.append(level.value)
        if product.manufacturer_id != brand.manufacturer_id:
            product.manufacturer_id = brand.manufacturer_id
            changed.append("manufacturer")
        if (name, sku) != (product.name, product.sku):
            product.name, product.sku = name, sku
            changed += ["name", "sku"]
        return changed

    def _apply_taxonomy(self, product: Product, dto: UpdateProductDTO) -> List[str]:
        if dto.category_id is None and dto.subcategory_id is None:
            return []
        category = self._load(HierarchyLevel.CATEGORY, dto.category_id)
        subcategory = self._load(HierarchyLevel.SUBCATEGORY, dto.subcategory_id)
        category_id = category.id if category else product.category_id
        if subcategory is not None and subcategory.category_id != category_id:
            raise ValidationError(
                f"Subcategory '{subcategory.name}' does not belong to the product's category."
            )
        changed = []
        if category is not None and category.id != product.category_id:
            product.category = category
            changed.append("category")
            if subcategory is None and product.subcategory_id is not None:
                # the old subcategory belongs to the old category
                product.subcategory = None
                changed.append("subcategory")
        if subcategory is not None and subcategory.id != product.subcategory_id:
            product.subcategory = subcategory
            changed.append("subcategory")
        return changed

    def _load(self, level: HierarchyLevel, entity_id: Any) -> Optional[HierarchyModel]:
        if entity_id is None:
            return None
        entity = self._hierarchy.get_by_id(level, entity_id)
        if entity is None:
            raise NotFoundError(f"{level.label.capitalize()} {entity_id} not found.")
        return entity

    def _upload(self, asset: UploadedAsset, folder: str, warnings: List[str]) -> str:
        if self._storage is None:
            warnings.append(f"Upload of '{asset.filename}' is not configured; skipped.")
            return ""
        try:
            return self._storage.upload(asset, folder=folder, tags=("product",))
        except StorageError as exc:
            self._log.warning(
                "product.asset_upload_failed", filename=asset.filename, error=exc.message
            )
            warnings.append(f"Upload of '{asset.filename}' failed: {exc.message}")
            return ""
