"""Derivation of product display name and SKU from the resolved hierarchy.

Both values are pure functions of the brand / variant / pack size / pack type
names.  Uniqueness is not checked here; the store's unique constraints (and
the callers' pre-checks) surface collisions as ``ConflictError``.  A name with
no letters or digits cannot contribute a SKU segment and is rejected with
``ValidationError``.
"""

from __future__ import annotations

from typing import NamedTuple, Protocol

from modules.catalog.normalizer import code_token, sanitize_display
from modules.core.exceptions import ValidationError

_SEGMENT_LABELS = ("brand", "variant", "pack size", "pack type")


class Named(Protocol):
    name: str


class DerivedCodes(NamedTuple):
    name: str
    sku: str


def require_code_segment(label: str, name: str) -> str:
    """``code_token(name)``, refusing names that leave an empty SKU segment."""
    token = code_token(name)
    if not token:
        raise ValidationError(
            f"{label.capitalize()} name '{name}' has no letters or digits to build a SKU from."
        )
    return token


class CodeGenerator:
    """Builds ``"{Brand} {Variant} {PackSize} ({PackType})"`` and
    ``"BRAND-VARIANT-PACKSIZE-PACKTYPE"``."""

    @staticmethod
    def product_name(
        brand: Named, variant: Named, pack_size: Named, pack_type: Named
    ) -> str:
        return (
            f"{sanitize_display(brand.name)} {sanitize_display(variant.name)} "
            f"{sanitize_display(pack_size.name)} ({sanitize_display(pack_type.name)})"
        )

    @staticmethod
    def product_sku(
        brand: Named, variant: Named, pack_size: Named, pack_type: Named
    ) -> str:
        return "-".join(
            require_code_segment(label, entity.name)
            for label, entity in zip(_SEGMENT_LABELS, (brand, variant, pack_size, pack_type))
        )

    def derive(
        self, brand: Named, variant: Named, pack_size: Named, pack_type: Named
    ) -> DerivedCodes:
        return DerivedCodes(
            name=self.product_name(brand, variant, pack_size, pack_type),
            sku=self.product_sku(brand, variant, pack_size, pack_type),
        )
