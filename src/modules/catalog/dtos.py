"""Hierarchy DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``).

- ``CreateEntityDTO``: input for interactive creation at any level.
- ``UpdateEntityDTO``: input for partial updates (rename, status, ...).
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


def _name_must_not_be_blank(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError("Name must not be empty.")
    return v


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateEntityDTO(BaseModel):
    """Immutable DTO for hierarchy entity creation.

    ``parent_id`` is required for every level except Manufacturer and
    Category; the service enforces that, since it depends on the level.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    parent_id: Optional[UUID] = None
    status: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        return _name_must_not_be_blank(v)


class UpdateEntityDTO(BaseModel):
    """Immutable DTO for hierarchy entity updates.

    All fields are optional; only supplied fields are applied.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: Optional[str]) -> Optional[str]:
        return _name_must_not_be_blank(v)
