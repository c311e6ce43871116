"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``).

- ``IngestionRowDTO``: one row of a bulk upload (names and/or ids per level).
- ``CreateProductDTO``: input for interactive product creation (ids).
- ``UpdateProductDTO``: input for partial product updates.
- ``BulkIngestionSummaryDTO`` (+ row / entity / product results): the bulk
  upload report, serialised in camelCase via ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from modules.products.models import Product

# level -> ids that let the level be inferred when its own name / id is absent
_INFERABLE_FROM = {
    "manufacturer": ("brand_id", "variant_id", "pack_size_id", "pack_type_id"),
    "brand": ("variant_id", "pack_size_id", "pack_type_id"),
    "variant": ("pack_size_id", "pack_type_id"),
    "pack_size": (),
    "pack_type": (),
    "category": ("subcategory_id",),
}

_CENTS = Decimal("0.01")
_PRICE_DIGITS = 12
_DISCOUNT_DIGITS = 5


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _parse_decimal(v: Any, message: str) -> Optional[Decimal]:
    v = _blank_to_none(v)
    if v is None:
        return None
    try:
        value = Decimal(str(v))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(message) from exc
    if not value.is_finite():
        raise ValueError(message)
    return value


def _fit_column(value: Decimal, max_digits: int, message: str) -> Decimal:
    # same precision as the Product columns: two decimal places
    value = value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    if abs(value) >= Decimal(10) ** (max_digits - 2):
        raise ValueError(message)
    return value


def _check_price(v: Any) -> Optional[Decimal]:
    value = _parse_decimal(v, "Invalid price value")
    if value is None:
        return None
    if value < 0:
        raise ValueError("Invalid price value")
    return _fit_column(
        value,
        _PRICE_DIGITS,
        f"Invalid price value (at most {_PRICE_DIGITS - 2} digits before the decimal point)",
    )


def _check_discount(v: Any) -> Optional[Decimal]:
    message = "Invalid discount value (must be 0-100)"
    value = _parse_decimal(v, message)
    if value is None:
        return None
    value = _fit_column(value, _DISCOUNT_DIGITS, message)
    if not (0 <= value <= 100):
        raise ValueError(message)
    return value


def _split_urls(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [url.strip() for url in v.split(",") if url.strip()]
    return [str(url).strip() for url in v if str(url).strip()]


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class IngestionRowDTO(BaseModel):
    """Immutable DTO for one bulk-ingestion row.

    Every hierarchy level may be given by name or by id.  A level given
    neither way is inferred from an explicitly referenced descendant
    (e.g. a ``variant_id`` implies its brand and manufacturer).

    Validates:
    - Each level of the product chain and the category is present or
      inferable ("Missing required field: <level>").
    - ``price`` is a non-negative number; ``discount`` is within 0..100.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    row_number: Optional[int] = None

    manufacturer: Optional[str] = None
    manufacturer_id: Optional[UUID] = None
    brand: Optional[str] = None
    brand_id: Optional[UUID] = None
    brand_logo: Optional[str] = None
    variant: Optional[str] = None
    variant_id: Optional[UUID] = None
    pack_size: Optional[str] = None
    pack_size_id: Optional[UUID] = None
    pack_type: Optional[str] = None
    pack_type_id: Optional[UUID] = None

    category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("category", "major_category")
    )
    category_id: Optional[UUID] = None
    category_description: Optional[str] = None
    subcategory: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("subcategory", "sub_category")
    )
    subcategory_id: Optional[UUID] = None
    subcategory_description: Optional[str] = None

    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "product_description"),
    )
    thumbnail: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("thumbnail", "product_thumbnail"),
    )
    images: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("images", "product_images"),
    )

    @field_validator("*", mode="before")
    @classmethod
    def empty_strings_are_absent(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("price", mode="before")
    @classmethod
    def price_must_be_non_negative(cls, v: Any) -> Optional[Decimal]:
        return _check_price(v)

    @field_validator("discount", mode="before")
    @classmethod
    def discount_must_be_percentage(cls, v: Any) -> Optional[Decimal]:
        return _check_discount(v)

    @field_validator("images", mode="before")
    @classmethod
    def images_are_comma_separated(cls, v: Any) -> List[str]:
        return _split_urls(v)

    @model_validator(mode="after")
    def levels_must_be_resolvable(self) -> IngestionRowDTO:
        for level, inferable_from in _INFERABLE_FROM.items():
            if getattr(self, level) or getattr(self, f"{level}_id"):
                continue
            if any(getattr(self, name) for name in inferable_from):
                continue
            raise ValueError(f"Missing required field: {level}")
        return self

    def name_for(self, level: str) -> Optional[str]:
        return getattr(self, level)

    def id_for(self, level: str) -> Optional[UUID]:
        return getattr(self, f"{level}_id")


class CreateProductDTO(BaseModel):
    """Immutable DTO for interactive product creation.

    The hierarchy is referenced by id; name and SKU are derived.
    """

    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    pack_size_id: UUID
    pack_type_id: UUID
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    manufacturer_id: Optional[UUID] = None
    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    @field_validator("price", mode="before")
    @classmethod
    def price_must_be_non_negative(cls, v: Any) -> Optional[Decimal]:
        return _check_price(v)

    @field_validator("discount", mode="before")
    @classmethod
    def discount_must_be_percentage(cls, v: Any) -> Optional[Decimal]:
        return _check_discount(v)

    @model_validator(mode="after")
    def category_must_be_given(self) -> CreateProductDTO:
        if self.category_id is None and self.subcategory_id is None:
            raise ValueError("Missing required field: category")
        return self

    def to_row(self, images: Optional[List[str]] = None) -> IngestionRowDTO:
        """The equivalent single ingestion row."""
        return IngestionRowDTO(
            row_number=1,
            manufacturer_id=self.manufacturer_id,
            brand_id=self.brand_id,
            variant_id=self.variant_id,
            pack_size_id=self.pack_size_id,
            pack_type_id=self.pack_type_id,
            category_id=self.category_id,
            subcategory_id=self.subcategory_id,
            price=self.price,
            discount=self.discount,
            description=self.description,
            thumbnail=self.thumbnail_url,
            images=list(self.images) if images is None else images,
        )


class UpdateProductDTO(BaseModel):
    """Immutable DTO for product update requests.

    All fields are optional; only supplied fields will be updated.  A new
    brand / variant / pack id regenerates name and SKU.
    """

    model_config = ConfigDict(frozen=True)

    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    description: Optional[str] = None
    status: Optional[str] = None
    thumbnail_url: Optional[str] = None
    images: Optional[List[str]] = None
    brand_id: Optional[UUID] = None
    variant_id: Optional[UUID] = None
    pack_size_id: Optional[UUID] = None
    pack_type_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_must_be_non_negative(cls, v: Any) -> Optional[Decimal]:
        return _check_price(v)

    @field_validator("discount", mode="before")
    @classmethod
    def discount_must_be_percentage(cls, v: Any) -> Optional[Decimal]:
        return _check_discount(v)

    @property
    def changes_identifiers(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in ("brand_id", "variant_id", "pack_size_id", "pack_type_id")
        )


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class EntityActionDTO(_ReportModel):
    """How one hierarchy level of a row was resolved."""

    level: str
    entity_id: UUID
    name: str
    action: str


class ProductResultDTO(_ReportModel):
    row_number: int
    product_id: UUID
    name: str
    sku: str
    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    status: str

    @classmethod
    def from_entity(cls, row_number: int, product: Product) -> ProductResultDTO:
        return cls(
            row_number=row_number,
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            price=product.price,
            discount=product.discount,
            status=product.status,
        )


class RowResultDTO(_ReportModel):
    """Outcome of one ingestion row."""

    row_number: int
    success: bool
    product_id: Optional[UUID] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    entities: List[EntityActionDTO] = Field(default_factory=list)


class BulkIngestionSummaryDTO(_ReportModel):
    """Batch report returned by the ingestion pipeline.

    ``errors`` holds one ``"Row N: reason"`` line per failed row, in input
    order.  Created counters only count rows that committed.
    """

    batch_id: str
    total_rows: int
    successful_products: int
    skipped_rows: int
    errors: List[str] = Field(default_factory=list)
    manufacturers_created: int = 0
    brands_created: int = 0
    variants_created: int = 0
    categories_created: int = 0
    entities_created: Dict[str, int] = Field(default_factory=dict)
    entities_referenced: Dict[str, int] = Field(default_factory=dict)
    products: List[ProductResultDTO] = Field(default_factory=list)
    row_results: List[RowResultDTO] = Field(default_factory=list)
    processing_time_ms: int = 0
    summary: str = ""
