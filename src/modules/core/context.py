"""Explicit configuration / logging context handed to every catalog component.

Components never reach for ``django.conf.settings`` or a module-level logger
on their own: they receive a ``ServiceContext`` in their constructor and bind
their own component name onto its logger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, field_validator

CASCADE_LEVEL_CHOICES = frozenset({"brand", "variant", "pack_size", "pack_type"})


class CatalogSettings(BaseModel):
    """Immutable snapshot of the ``CATALOG`` settings block."""

    model_config = ConfigDict(frozen=True)

    cache_key_prefix: str = "catalog"
    bulk_max_rows: int = 1000
    bulk_default_product_status: str = "queue"
    default_product_status: str = "draft"
    cascade_levels: frozenset[str] = CASCADE_LEVEL_CHOICES
    asset_folder: str = "catalog"

    @field_validator("bulk_max_rows")
    @classmethod
    def max_rows_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("BULK_MAX_ROWS must be greater than zero.")
        return v

    @field_validator("cascade_levels", mode="before")
    @classmethod
    def cascade_levels_must_be_known(cls, v: Any) -> frozenset[str]:
        levels = frozenset(str(level).strip() for level in v if str(level).strip())
        unknown = levels - CASCADE_LEVEL_CHOICES
        if unknown:
            raise ValueError(f"Unknown cascade levels: {sorted(unknown)}")
        return levels

    @classmethod
    def from_django(cls) -> CatalogSettings:
        """Build from ``settings.CATALOG`` (keys are upper-case)."""
        from django.conf import settings

        raw = getattr(settings, "CATALOG", {})
        return cls(**{key.lower(): value for key, value in raw.items()})


@dataclass(frozen=True)
class ServiceContext:
    """Settings + logger pair passed explicitly into component constructors."""

    settings: CatalogSettings = field(default_factory=CatalogSettings)
    logger: Any = field(default_factory=lambda: structlog.get_logger("catalog"))

    @classmethod
    def from_django(cls) -> ServiceContext:
        return cls(settings=CatalogSettings.from_django())

    def logger_for(self, component: str):
        """Return the context logger bound to ``component``."""
        return self.logger.bind(component=component)
