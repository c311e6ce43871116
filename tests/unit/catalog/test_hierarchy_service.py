"""Unit tests for HierarchyService.

Covers:
- create(): parent rules, duplicate names, status / field validation,
  logo upload warnings, audit + cache invalidation after commit.
- update(): field edits, plain renames (slug regeneration), cascading
  renames of name-bearing levels.
- delete(): blocked while referenced; soft delete otherwise.
- get() / list_children().
"""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from modules.catalog.dtos import CreateEntityDTO, UpdateEntityDTO
from modules.catalog.levels import HierarchyLevel
from modules.catalog.models import Brand, BrandStatus, Manufacturer, ManufacturerStatus
from modules.catalog.repositories.django_repository import HierarchyDjangoRepository
from modules.core.exceptions import (
    ConflictError,
    InactiveParentError,
    NotFoundError,
    ValidationError,
)
from modules.core.models import AuditAction, AuditLog
from modules.core.storage import UploadedAsset
from modules.products.factories import build_catalog_services

pytestmark = pytest.mark.unit


@pytest.fixture()
def hierarchy(services):
    return services.hierarchy


@pytest.fixture()
def manufacturer(hierarchy):
    return hierarchy.create(HierarchyLevel.MANUFACTURER, CreateEntityDTO(name="nestle")).entity


# ===========================================================================
# create
# ===========================================================================


class TestCreate:
    def test_creates_with_display_name(self, hierarchy):
        result = hierarchy.create(
            HierarchyLevel.MANUFACTURER, CreateEntityDTO(name="  dufil   PRIMA foods")
        )
        assert result.entity.name == "Dufil Prima Foods"
        assert result.warnings == ()

    def test_child_created_under_parent(self, hierarchy, manufacturer):
        result = hierarchy.create(
            HierarchyLevel.BRAND,
            CreateEntityDTO(name="Maggi", parent_id=manufacturer.id),
            actor_id="user-1",
        )
        assert result.entity.manufacturer_id == manufacturer.id
        assert result.entity.created_by == "user-1"

    def test_audit_written_after_commit(self, hierarchy, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = hierarchy.create(
                HierarchyLevel.CATEGORY, CreateEntityDTO(name="Food"), actor_id="user-1"
            )
        entry = AuditLog.objects.get(resource_type="category")
        assert entry.action == AuditAction.CREATE
        assert entry.resource_id == str(result.entity.id)

    def test_missing_parent_id(self, hierarchy):
        with pytest.raises(ValidationError, match="manufacturer is required"):
            hierarchy.create(HierarchyLevel.BRAND, CreateEntityDTO(name="Maggi"))

    def test_unknown_parent(self, hierarchy):
        with pytest.raises(NotFoundError):
            hierarchy.create(
                HierarchyLevel.BRAND, CreateEntityDTO(name="Maggi", parent_id=uuid.uuid4())
            )

    def test_deleted_parent(self, hierarchy, manufacturer):
        manufacturer.delete()
        with pytest.raises(NotFoundError):
            hierarchy.create(
                HierarchyLevel.BRAND, CreateEntityDTO(name="Maggi", parent_id=manufacturer.id)
            )

    def test_inactive_parent(self, hierarchy):
        suspended = Manufacturer.objects.create(
            name="Closed Foods", status=ManufacturerStatus.SUSPENDED
        )
        with pytest.raises(InactiveParentError, match="suspended"):
            hierarchy.create(
                HierarchyLevel.BRAND, CreateEntityDTO(name="Maggi", parent_id=suspended.id)
            )

    def test_duplicate_name_in_scope(self, hierarchy, manufacturer):
        dto = CreateEntityDTO(name="Maggi", parent_id=manufacturer.id)
        first = hierarchy.create(HierarchyLevel.BRAND, dto).entity

        with pytest.raises(ConflictError) as exc_info:
            hierarchy.create(
                HierarchyLevel.BRAND, CreateEntityDTO(name=" MAGGI ", parent_id=manufacturer.id)
            )
        assert exc_info.value.details["existing_id"] == str(first.id)

    def test_invalid_status(self, hierarchy):
        with pytest.raises(ValidationError, match="Invalid manufacturer status"):
            hierarchy.create(
                HierarchyLevel.MANUFACTURER, CreateEntityDTO(name="X", status="closed")
            )

    def test_field_not_carried_by_level(self, hierarchy):
        with pytest.raises(ValidationError, match="has no logo url"):
            hierarchy.create(
                HierarchyLevel.MANUFACTURER,
                CreateEntityDTO(name="X", logo_url="https://example.com/x.png"),
            )

    def test_blank_name_rejected_by_dto(self):
        with pytest.raises(PydanticValidationError, match="Name must not be empty"):
            CreateEntityDTO(name="   ")

    def test_logo_is_uploaded(self, hierarchy, manufacturer):
        result = hierarchy.create(
            HierarchyLevel.BRAND,
            CreateEntityDTO(name="Maggi", parent_id=manufacturer.id),
            logo=UploadedAsset("maggi.png", b"\x89PNG"),
        )
        assert result.entity.logo_url.endswith("brands/maggi.png")

    def test_failed_logo_upload_is_a_warning(self, catalog_context, manufacturer):
        broken = MagicMock()
        broken.save.side_effect = OSError("bucket unavailable")
        hierarchy = build_catalog_services(catalog_context, storage=broken).hierarchy

        result = hierarchy.create(
            HierarchyLevel.BRAND,
            CreateEntityDTO(name="Maggi", parent_id=manufacturer.id),
            logo=UploadedAsset("maggi.png", b"\x89PNG"),
        )

        assert result.entity.logo_url == ""
        assert len(result.warnings) == 1
        assert "Logo upload failed" in result.warnings[0]


# ===========================================================================
# update
# ===========================================================================


class TestUpdate:
    def test_status_change(self, hierarchy, manufacturer):
        result = hierarchy.update(
            HierarchyLevel.MANUFACTURER,
            manufacturer.id,
            UpdateEntityDTO(status=ManufacturerStatus.INACTIVE),
            actor_id="user-2",
        )
        result.entity.refresh_from_db()
        assert result.entity.status == ManufacturerStatus.INACTIVE
        assert result.entity.updated_by == "user-2"

    def test_unknown_entity(self, hierarchy):
        with pytest.raises(NotFoundError):
            hierarchy.update(HierarchyLevel.BRAND, uuid.uuid4(), UpdateEntityDTO(name="X"))

    def test_plain_rename_records_audit(
        self, hierarchy, manufacturer, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = hierarchy.update(
                HierarchyLevel.MANUFACTURER, manufacturer.id, UpdateEntityDTO(name="nestle plc")
            )
        assert result.entity.name == "Nestle Plc"
        assert result.cascade is None
        entry = AuditLog.objects.get(action=AuditAction.RENAME)
        assert entry.metadata == {"old_name": "Nestle", "new_name": "Nestle Plc"}

    def test_rename_to_taken_name(self, hierarchy):
        hierarchy.create(HierarchyLevel.CATEGORY, CreateEntityDTO(name="Food"))
        drinks = hierarchy.create(HierarchyLevel.CATEGORY, CreateEntityDTO(name="Drinks")).entity
        with pytest.raises(ConflictError):
            hierarchy.update(HierarchyLevel.CATEGORY, drinks.id, UpdateEntityDTO(name="FOOD"))

    def test_category_rename_regenerates_slug(self, hierarchy):
        category = hierarchy.create(
            HierarchyLevel.CATEGORY, CreateEntityDTO(name="Soft Drinks")
        ).entity
        hierarchy.update(HierarchyLevel.CATEGORY, category.id, UpdateEntityDTO(name="Sodas"))
        category.refresh_from_db()
        assert category.slug == "sodas"

    def test_brand_rename_cascades_to_products(
        self, hierarchy, make_chain, make_product
    ):
        chain = make_chain()
        product = make_product(chain)

        result = hierarchy.update(
            HierarchyLevel.BRAND, chain.brand.id, UpdateEntityDTO(name="Indomie Plus")
        )

        assert result.cascade is not None
        assert result.cascade.updated_products == 1
        product.refresh_from_db()
        assert product.name == "Indomie Plus Chicken 70g (Single Pack)"
        assert product.sku == "INDOMIE-PLUS-CHICKEN-70G-SINGLE-PACK"

    def test_same_name_is_not_a_rename(self, hierarchy, manufacturer):
        result = hierarchy.update(
            HierarchyLevel.MANUFACTURER, manufacturer.id, UpdateEntityDTO(name="NESTLE")
        )
        assert result.entity.name == "Nestle"
        assert result.cascade is None
        assert not AuditLog.objects.filter(action=AuditAction.RENAME).exists()

    def test_failed_cascade_leaves_entity_unchanged(self, hierarchy, make_chain, make_product):
        chain = make_chain()
        make_product(chain)
        Brand.objects.create(name="Supermi", manufacturer=chain.manufacturer)
        brand = chain.brand

        with patch.object(HierarchyDjangoRepository, "get_by_id", return_value=brand):
            with pytest.raises(ConflictError):
                hierarchy.update(
                    HierarchyLevel.BRAND,
                    brand.id,
                    UpdateEntityDTO(
                        name="Supermi",
                        status=BrandStatus.DISCONTINUED,
                        logo_url="https://cdn.example.com/indomie.png",
                    ),
                    actor_id="user-7",
                )

        assert (brand.name, brand.status, brand.logo_url) == ("Indomie", BrandStatus.ACTIVE, "")
        assert brand.updated_by == "tester"
        brand.refresh_from_db()
        assert (brand.name, brand.status, brand.logo_url) == ("Indomie", BrandStatus.ACTIVE, "")


# ===========================================================================
# delete / get / list_children
# ===========================================================================


class TestDelete:
    def test_blocked_while_children_alive(self, hierarchy, manufacturer):
        hierarchy.create(HierarchyLevel.BRAND, CreateEntityDTO(name="Maggi", parent_id=manufacturer.id))
        with pytest.raises(ConflictError, match="still referenced"):
            hierarchy.delete(HierarchyLevel.MANUFACTURER, manufacturer.id)

    def test_soft_deletes(self, hierarchy, manufacturer):
        hierarchy.delete(HierarchyLevel.MANUFACTURER, manufacturer.id, actor_id="user-4")
        manufacturer.refresh_from_db()
        assert manufacturer.is_deleted
        assert manufacturer.deleted_by == "user-4"

    def test_already_deleted(self, hierarchy, manufacturer):
        hierarchy.delete(HierarchyLevel.MANUFACTURER, manufacturer.id)
        with pytest.raises(NotFoundError):
            hierarchy.delete(HierarchyLevel.MANUFACTURER, manufacturer.id)


class TestQueries:
    def test_get_includes_soft_deleted(self, hierarchy, manufacturer):
        manufacturer.delete()
        found = hierarchy.get(HierarchyLevel.MANUFACTURER, manufacturer.id)
        assert found.is_deleted

    def test_get_unknown(self, hierarchy):
        with pytest.raises(NotFoundError):
            hierarchy.get(HierarchyLevel.VARIANT, uuid.uuid4())

    def test_list_children(self, hierarchy, manufacturer):
        for name in ("Maggi", "Milo"):
            hierarchy.create(HierarchyLevel.BRAND, CreateEntityDTO(name=name, parent_id=manufacturer.id))
        Brand.objects.get(name="Milo").delete()
        names = [b.name for b in hierarchy.list_children(HierarchyLevel.BRAND, manufacturer.id)]
        assert names == ["Maggi"]
