"""Integration tests for bulk ingestion.

Covers:
- Idempotent re-ingestion: the second run creates nothing and references
  every hierarchy entity.
- Batch-local dedup: a brand introduced by two rows is created once.
- Partial-failure batch: 10 rows, 2 with an unknown subcategory id.
- Audit trail and post-commit cache invalidation of a batch.
"""

from __future__ import annotations

import uuid

import pytest
from django.core.cache import cache

from modules.catalog.models import Brand, Manufacturer
from modules.core.models import AuditAction, AuditLog
from modules.products.csv_import import template_csv
from modules.products.models import Product

pytestmark = pytest.mark.integration

CSV = """manufacturer,brand,variant,pack_size,pack_type,major_category,sub_category,price,product_description
Dufil Prima Foods,Indomie,Chicken,70g,Single Pack,Food,Noodles,0.50,Instant noodles
Dufil Prima Foods,Indomie,Onion,70g,Single Pack,Food,Noodles,0.50,Instant noodles
Nestle,Maggi,Chicken,10g,Cube,Food,Seasoning,0.10,Seasoning cube
Nestle,Milo,Original,400g,Tin,Beverages,Chocolate Drinks,4.20,Malted drink
"""


class TestIdempotentReingestion:
    def test_second_run_creates_nothing(self, services):
        first = services.products.bulk_import(CSV.encode(), actor_id="user-1")
        assert first.successful_products == 4
        entity_count = Manufacturer.objects.count() + Brand.objects.count()

        second = services.products.bulk_import(CSV.encode(), actor_id="user-1")

        assert all(count == 0 for count in second.entities_created.values())
        assert second.manufacturers_created == 0
        assert second.brands_created == 0
        for row in second.row_results:
            assert len(row.entities) == 7
            assert {entity.action for entity in row.entities} == {"referenced"}
        assert Manufacturer.objects.count() + Brand.objects.count() == entity_count
        assert Product.objects.count() == 4

    def test_case_and_spacing_variants_are_the_same_entities(self, services):
        services.products.bulk_import(CSV.encode())
        shouty = CSV.replace("Dufil Prima Foods", "  DUFIL prima   foods ").replace(
            "Indomie", "indomie"
        )

        second = services.products.bulk_import(shouty.encode())

        assert second.entities_created["manufacturers"] == 0
        assert second.entities_created["brands"] == 0
        assert Manufacturer.objects.filter(normalized_name="dufil prima foods").count() == 1

    def test_template_can_be_ingested_twice(self, services):
        first = services.products.bulk_import(template_csv())
        second = services.products.bulk_import(template_csv())
        assert first.successful_products == 2
        assert sum(second.entities_created.values()) == 0


class TestBatchLocalDedup:
    def test_brand_introduced_twice_is_created_once(self, services):
        rows = [
            {
                "row_number": 1,
                "manufacturer": "Nestle",
                "brand": "Maggi",
                "variant": "Chicken",
                "pack_size": "10g",
                "pack_type": "Cube",
                "category": "Food",
            },
            {
                "row_number": 2,
                "manufacturer": "Nestle",
                "brand": "MAGGI",
                "variant": "Beef",
                "pack_size": "10g",
                "pack_type": "Cube",
                "category": "Food",
            },
        ]

        summary = services.pipeline.ingest(rows)

        assert summary.successful_products == 2
        assert Brand.objects.filter(normalized_name="maggi").count() == 1
        assert summary.brands_created == 1
        brand_actions = [
            entity.action
            for row in summary.row_results
            for entity in row.entities
            if entity.level == "brand"
        ]
        assert brand_actions == ["created", "referenced"]


class TestPartialFailureBatch:
    def test_ten_rows_two_bad_subcategory_ids(self, services, make_chain):
        chain = make_chain()
        missing = uuid.uuid4()
        bad_rows = {4, 9}
        rows = []
        for number in range(1, 11):
            row = {
                "row_number": number,
                "brand_id": str(chain.brand.id),
                "variant": f"Flavour {number}",
                "pack_size": "70g",
                "pack_type": "Single Pack",
                "category_id": str(chain.category.id),
                "price": "0.50",
            }
            if number in bad_rows:
                row["subcategory_id"] = str(missing)
            rows.append(row)

        summary = services.pipeline.ingest(rows)

        assert summary.total_rows == 10
        assert summary.successful_products == 8
        assert summary.skipped_rows == 2
        assert summary.errors == [
            f"Row 4: Subcategory {missing} not found.",
            f"Row 9: Subcategory {missing} not found.",
        ]
        failed = [r.row_number for r in summary.row_results if not r.success]
        assert failed == [4, 9]
        assert Product.objects.count() == 8
        data = summary.model_dump(by_alias=True)
        assert (data["totalRows"], data["successfulProducts"], data["skippedRows"]) == (10, 8, 2)
        assert summary.summary.startswith(
            "Bulk upload completed: 8/10 products created successfully, 2 failed"
        )


class TestBatchSideEffects:
    def test_audit_and_cache_after_commit(self, services, django_capture_on_commit_callbacks):
        cache.set("catalog:products:list", ["stale"])

        with django_capture_on_commit_callbacks(execute=True):
            summary = services.products.bulk_import(CSV.encode(), actor_id="user-1")

        assert cache.get("catalog:products:list") is None
        batch = AuditLog.objects.get(action=AuditAction.BULK_UPLOAD)
        assert batch.resource_id == summary.batch_id
        assert batch.metadata == {"total_rows": 4, "successful_products": 4, "skipped_rows": 0}
        assert AuditLog.objects.filter(action=AuditAction.CREATE, resource_type="product").count() == 4
