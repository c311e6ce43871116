"""Row-by-row ingestion of products and the hierarchy they hang from.

Each row resolves Manufacturer -> Brand -> Variant -> PackSize -> PackType
and Category -> Subcategory through the ``EntityResolver``, derives the
product name / SKU with the ``CodeGenerator`` and persists the product.

Rows run strictly in input order, each in its own transaction: a failing
row is rolled back (entities it created included), reported, and the batch
moves on.  The batch-local resolver cache lives for one ``ingest`` call.
"""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import structlog
from django.db import transaction
from pydantic import ValidationError as PydanticValidationError

from modules.catalog.codes import CodeGenerator
from modules.catalog.levels import (
    LEVELS,
    NAME_BEARING_LEVELS,
    PRODUCT_CHAIN,
    TAXONOMY_CHAIN,
    HierarchyLevel,
)
from modules.catalog.queries import HierarchyQueryOptions
from modules.catalog.resolver import BatchCache, Resolution, ResolutionAction
from modules.core.exceptions import (
    CatalogError,
    ConflictError,
    NotFoundError,
    ValidationError,
    translate_persistence_errors,
)
from modules.core.models import AuditAction
from modules.products.dtos import (
    BulkIngestionSummaryDTO,
    EntityActionDTO,
    IngestionRowDTO,
    ProductResultDTO,
    RowResultDTO,
)
from modules.products.models import Product

if TYPE_CHECKING:
    from modules.catalog.models import HierarchyModel
    from modules.catalog.repositories.interfaces import IHierarchyRepository
    from modules.catalog.resolver import EntityResolver
    from modules.core.audit import IAuditSink
    from modules.core.cache import CacheInvalidator
    from modules.core.context import ServiceContext
    from modules.products.repositories.interfaces import IProductRepository

RowInput = Union[IngestionRowDTO, Mapping[str, Any]]

ANCESTORS = HierarchyQueryOptions(include_ancestors=True)

PRICE_WARNING = "Price not provided - can be set later"
DESCRIPTION_WARNING = "Product description not provided"


@dataclass
class RowOutcome:
    """A committed row: the product and how each level was resolved."""

    row_number: int
    product: Product
    resolutions: List[Resolution]
    warnings: List[str] = field(default_factory=list)
    refreshed_logo: bool = False

    @property
    def created_levels(self) -> List[HierarchyLevel]:
        return [r.level for r in self.resolutions if r.created]


def validation_message(exc: PydanticValidationError) -> str:
    """Human message of a pydantic failure, without pydantic's prefixes."""
    messages = []
    for error in exc.errors():
        reason = error.get("ctx", {}).get("error")
        message = str(reason) if reason is not None else error["msg"]
        location = ".".join(str(part) for part in error.get("loc", ()))
        if reason is None and location:
            message = f"{location}: {message}"
        messages.append(message)
    return "; ".join(messages)


class IngestionPipeline:
    """Drives rows through resolution, code derivation and persistence.

    ``ingest`` is the bulk entry point (row errors are aggregated);
    ``ingest_one`` is the interactive one (errors propagate).
    """

    def __init__(
        self,
        context: ServiceContext,
        hierarchy_repository: IHierarchyRepository,
        product_repository: IProductRepository,
        resolver: EntityResolver,
        invalidator: CacheInvalidator,
        audit: IAuditSink,
        code_generator: Optional[CodeGenerator] = None,
    ) -> None:
        self._settings = context.settings
        self._hierarchy = hierarchy_repository
        self._products = product_repository
        self._resolver = resolver
        self._invalidator = invalidator
        self._audit = audit
        self._codes = code_generator or CodeGenerator()
        self._log = context.logger_for("ingestion_pipeline")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def ingest(
        self, rows: Iterable[RowInput], actor_id: Optional[str] = None
    ) -> BulkIngestionSummaryDTO:
        """Ingest ``rows`` in order; row failures are reported, not raised.

        Raises:
            ValidationError: the batch is empty or exceeds ``BULK_MAX_ROWS``.
        """
        rows = list(rows)
        if not rows:
            raise ValidationError("No data rows to ingest.")
        if len(rows) > self._settings.bulk_max_rows:
            raise ValidationError(
                f"Batch has {len(rows)} rows; at most "
                f"{self._settings.bulk_max_rows} are accepted."
            )

        batch_id = uuid.uuid4().hex
        started = time.monotonic()
        resolver = self._resolver.with_batch_cache(BatchCache())
        report = _BatchReport(total_rows=len(rows))
        status = self._settings.bulk_default_product_status

        with structlog.contextvars.bound_contextvars(batch_id=batch_id, actor_id=actor_id):
            self._log.info("ingestion.started", total_rows=len(rows))
            for index, raw in enumerate(rows, start=1):
                row_number = _row_number(raw, index)
                touched: List[Resolution] = []
                try:
                    outcome = self._run_row(
                        raw, row_number, resolver, actor_id, status, touched
                    )
                except CatalogError as exc:
                    self._log.warning(
                        "ingestion.row_failed",
                        row_number=row_number,
                        code=exc.code,
                        error=exc.message,
                    )
                    report.failed(row_number, exc, touched)
                    continue
                report.succeeded(outcome)

            summary = report.summary(batch_id, int((time.monotonic() - started) * 1000))
            if summary.successful_products:
                self._invalidator.invalidate_after_commit(*report.touched_types)
            self._audit.record(
                AuditAction.BULK_UPLOAD,
                "product",
                batch_id,
                actor_id,
                {
                    "total_rows": summary.total_rows,
                    "successful_products": summary.successful_products,
                    "skipped_rows": summary.skipped_rows,
                },
            )
            self._log.info(
                "ingestion.completed",
                total_rows=summary.total_rows,
                successful_products=summary.successful_products,
                skipped_rows=summary.skipped_rows,
                processing_time_ms=summary.processing_time_ms,
            )
        return summary

    def ingest_one(
        self,
        row: RowInput,
        actor_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> RowOutcome:
        """Ingest a single row; any failure is raised to the caller.

        Raises:
            ValidationError, NotFoundError, InactiveParentError,
            ConflictError, TransactionError
        """
        outcome = self._run_row(
            row,
            _row_number(row, 1),
            self._resolver,
            actor_id,
            status or self._settings.default_product_status,
            [],
        )
        types = {level.value for level in outcome.created_levels} | {"product"}
        if outcome.refreshed_logo:
            types.add(HierarchyLevel.BRAND.value)
        self._invalidator.invalidate_after_commit(*sorted(types))
        return outcome

    # ------------------------------------------------------------------
    # Row processing
    # ------------------------------------------------------------------

    def _run_row(
        self,
        raw: RowInput,
        row_number: int,
        resolver: EntityResolver,
        actor_id: Optional[str],
        status: str,
        touched: List[Resolution],
    ) -> RowOutcome:
        row = self._parse(raw, row_number)
        batch = resolver.batch_cache
        if batch is not None:
            batch.begin_row()
        try:
            with translate_persistence_errors(f"Row {row_number}"):
                with transaction.atomic():
                    outcome = self._process(row, row_number, resolver, actor_id, status, touched)
        except CatalogError:
            if batch is not None:
                batch.rollback_row()
            raise
        if batch is not None:
            batch.commit_row()
        return outcome

    @staticmethod
    def _parse(raw: RowInput, row_number: int) -> IngestionRowDTO:
        if isinstance(raw, IngestionRowDTO):
            return raw
        try:
            return IngestionRowDTO.model_validate(dict(raw))
        except PydanticValidationError as exc:
            raise ValidationError(validation_message(exc), row_number=row_number) from exc

    def _process(
        self,
        row: IngestionRowDTO,
        row_number: int,
        resolver: EntityResolver,
        actor_id: Optional[str],
        status: str,
        touched: List[Resolution],
    ) -> RowOutcome:
        resolved = self._resolve_levels(PRODUCT_CHAIN, row, resolver, actor_id, touched)
        resolved.update(
            self._resolve_levels(TAXONOMY_CHAIN, row, resolver, actor_id, touched)
        )
        refreshed_logo = self._refresh_brand_logo(
            resolved[HierarchyLevel.BRAND], row.brand_logo, actor_id
        )

        name, sku = self._codes.derive(
            *(resolved[level].entity for level in NAME_BEARING_LEVELS)
        )
        if self._products.find_conflicts([sku], [name]):
            raise ConflictError(
                f'Product with name "{name}" or SKU "{sku}" already exists',
                sku=sku,
            )

        subcategory = resolved.get(HierarchyLevel.SUBCATEGORY)
        product = Product(
            name=name,
            sku=sku,
            description=row.description or "",
            price=row.price,
            discount=row.discount,
            status=status,
            images=list(row.images),
            thumbnail_url=row.thumbnail or "",
            manufacturer=resolved[HierarchyLevel.MANUFACTURER].entity,
            brand=resolved[HierarchyLevel.BRAND].entity,
            variant=resolved[HierarchyLevel.VARIANT].entity,
            pack_size=resolved[HierarchyLevel.PACK_SIZE].entity,
            pack_type=resolved[HierarchyLevel.PACK_TYPE].entity,
            category=resolved[HierarchyLevel.CATEGORY].entity,
            subcategory=subcategory.entity if subcategory else None,
        )
        self._products.save(product, actor_id)

        for resolution in touched:
            if resolution.created:
                self._audit.record(
                    AuditAction.CREATE,
                    resolution.level.value,
                    str(resolution.entity.id),
                    actor_id,
                    {"name": resolution.entity.name, "source": "ingestion"},
                )
        self._audit.record(
            AuditAction.CREATE, "product", str(product.id), actor_id, {"sku": sku}
        )

        warnings = []
        if row.price is None:
            warnings.append(PRICE_WARNING)
        if not row.description:
            warnings.append(DESCRIPTION_WARNING)
        return RowOutcome(row_number, product, list(touched), warnings, refreshed_logo)

    def _resolve_levels(
        self,
        chain: Tuple[HierarchyLevel, ...],
        row: IngestionRowDTO,
        resolver: EntityResolver,
        actor_id: Optional[str],
        touched: List[Resolution],
    ) -> Dict[HierarchyLevel, Resolution]:
        """Resolve ``chain`` top-down; parents always precede children."""
        inferred = self._infer_ancestors(chain, row)
        resolved: Dict[HierarchyLevel, Resolution] = {}
        for level in chain:
            parent = resolved[level.parent].entity if level.parent is not None else None
            entity_id = row.id_for(level.value)
            name = row.name_for(level.value)
            if entity_id is not None:
                resolution = resolver.reference(level, entity_id, parent)
            elif name:
                resolution = resolver.resolve(
                    level, name, parent, actor_id, defaults=self._defaults(level, row)
                )
            elif level in inferred:
                resolution = Resolution(level, inferred[level], ResolutionAction.REFERENCED)
            else:
                # optional level (subcategory) left blank
                continue
            resolved[level] = resolution
            touched.append(resolution)
        return resolved

    def _infer_ancestors(
        self, chain: Tuple[HierarchyLevel, ...], row: IngestionRowDTO
    ) -> Dict[HierarchyLevel, HierarchyModel]:
        """Ancestors implied by explicitly referenced ids, deepest id first."""
        inferred: Dict[HierarchyLevel, HierarchyModel] = {}
        for level in reversed(chain):
            entity_id = row.id_for(level.value)
            if entity_id is None or level.parent is None:
                continue
            current = self._hierarchy.get_by_id(level, entity_id, ANCESTORS)
            if current is None:
                raise NotFoundError(f"{level.label.capitalize()} {entity_id} not found.")
            current_level = level
            while current_level.parent is not None:
                ancestor = getattr(current, current_level.parent_field)
                if ancestor.is_deleted:
                    raise NotFoundError(
                        f"{current_level.parent.label.capitalize()} {ancestor.id} not found."
                    )
                inferred.setdefault(current_level.parent, ancestor)
                current_level, current = current_level.parent, ancestor
        return inferred

    @staticmethod
    def _defaults(level: HierarchyLevel, row: IngestionRowDTO) -> Dict[str, Any]:
        if level is HierarchyLevel.BRAND and row.brand_logo:
            return {"logo_url": row.brand_logo}
        if level is HierarchyLevel.CATEGORY and row.category_description:
            return {"description": row.category_description}
        if level is HierarchyLevel.SUBCATEGORY and row.subcategory_description:
            return {"description": row.subcategory_description}
        return {}

    def _refresh_brand_logo(
        self, resolution: Resolution, logo_url: Optional[str], actor_id: Optional[str]
    ) -> bool:
        brand = resolution.entity
        if resolution.created or not logo_url or brand.logo_url == logo_url:
            return False
        brand.logo_url = logo_url
        self._hierarchy.save(brand, actor_id, update_fields=["logo_url"])
        self._log.info("ingestion.brand_logo_refreshed", brand_id=str(brand.id))
        return True


def _row_number(raw: RowInput, index: int) -> int:
    if isinstance(raw, IngestionRowDTO):
        return raw.row_number or index
    return raw.get("row_number") or index


class _BatchReport:
    """Accumulates row outcomes into a ``BulkIngestionSummaryDTO``."""

    def __init__(self, total_rows: int) -> None:
        self.total_rows = total_rows
        self.row_results: List[RowResultDTO] = []
        self.products: List[ProductResultDTO] = []
        self.errors: List[str] = []
        self.created: Counter[str] = Counter()
        self.referenced: Counter[str] = Counter()
        self.touched_types = {"product"}

    def succeeded(self, outcome: RowOutcome) -> None:
        for resolution in outcome.resolutions:
            counter = self.created if resolution.created else self.referenced
            counter[resolution.level.plural] += 1
            if resolution.created:
                self.touched_types.add(resolution.level.value)
        if outcome.refreshed_logo:
            self.touched_types.add(HierarchyLevel.BRAND.value)
        self.created["products"] += 1

        product = outcome.product
        self.products.append(ProductResultDTO.from_entity(outcome.row_number, product))
        self.row_results.append(
            RowResultDTO(
                row_number=outcome.row_number,
                success=True,
                product_id=product.id,
                product_name=product.name,
                sku=product.sku,
                warnings=outcome.warnings,
                entities=_entity_actions(outcome.resolutions),
            )
        )

    def failed(
        self, row_number: int, exc: CatalogError, touched: List[Resolution]
    ) -> None:
        self.errors.append(f"Row {row_number}: {exc.message}")
        # entities created by a rolled-back row no longer exist
        referenced = [r for r in touched if not r.created]
        self.row_results.append(
            RowResultDTO(
                row_number=row_number,
                success=False,
                error=exc.message,
                error_code=exc.code,
                entities=_entity_actions(referenced),
            )
        )

    def summary(self, batch_id: str, processing_time_ms: int) -> BulkIngestionSummaryDTO:
        successful = len(self.products)
        skipped = self.total_rows - successful
        created = {meta.plural: self.created[meta.plural] for meta in LEVELS.values()}
        created["products"] = self.created["products"]
        referenced = {
            meta.plural: self.referenced[meta.plural] for meta in LEVELS.values()
        }
        return BulkIngestionSummaryDTO(
            batch_id=batch_id,
            total_rows=self.total_rows,
            successful_products=successful,
            skipped_rows=skipped,
            errors=self.errors,
            manufacturers_created=created["manufacturers"],
            brands_created=created["brands"],
            variants_created=created["variants"],
            categories_created=created["categories"],
            entities_created=created,
            entities_referenced=referenced,
            products=self.products,
            row_results=self.row_results,
            processing_time_ms=processing_time_ms,
            summary=_summary_line(self.total_rows, successful, skipped, created, referenced),
        )


def _entity_actions(resolutions: Iterable[Resolution]) -> List[EntityActionDTO]:
    return [
        EntityActionDTO(
            level=r.level.value,
            entity_id=r.entity.id,
            name=r.entity.name,
            action=r.action.value,
        )
        for r in resolutions
    ]


def _summary_line(
    total: int,
    successful: int,
    skipped: int,
    created: Dict[str, int],
    referenced: Dict[str, int],
) -> str:
    line = f"Bulk upload completed: {successful}/{total} products created successfully"
    if skipped:
        line += f", {skipped} failed"
    total_created = sum(created.values())
    total_referenced = sum(referenced.values())
    if total_created:
        line += f". Created {total_created} new entities"
    if total_referenced:
        line += f", referenced {total_referenced} existing entities"
    return line
