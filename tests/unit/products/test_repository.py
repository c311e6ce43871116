"""Unit tests for ProductDjangoRepository.

Covers:
- CRUD operations (get_by_id, list, save, delete).
- Product-specific queries (find_conflicts, list_alive_for).
- Edge cases (invalid UUIDs, soft-deleted records).
"""

from __future__ import annotations

import uuid

import pytest

from modules.catalog.levels import HierarchyLevel
from modules.products.models import ProductStatus
from modules.products.queries import ProductQueryOptions
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.repositories.interfaces import IProductRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return ProductDjangoRepository()


@pytest.fixture()
def chain(make_chain):
    return make_chain()


# ===========================================================================
# Instantiation
# ===========================================================================


class TestRepositoryInstantiation:
    def test_is_instance_of_interface(self, repo):
        assert isinstance(repo, IProductRepository)


# ===========================================================================
# get_by_id
# ===========================================================================


class TestGetById:
    def test_returns_product(self, repo, chain, make_product):
        product = make_product(chain)
        assert repo.get_by_id(product.id) == product

    def test_soft_deleted_returns_none(self, repo, chain, make_product):
        product = make_product(chain)
        product.delete()
        assert repo.get_by_id(product.id) is None

    def test_soft_deleted_with_include_deleted(self, repo, chain, make_product):
        product = make_product(chain)
        product.delete()
        found = repo.get_by_id(product.id, ProductQueryOptions(include_deleted=True))
        assert found == product

    def test_invalid_uuid_returns_none(self, repo):
        assert repo.get_by_id("not-a-uuid") is None

    def test_nonexistent_returns_none(self, repo):
        assert repo.get_by_id(uuid.uuid4()) is None

    def test_hierarchy_loaded_in_one_query(
        self, repo, chain, make_product, django_assert_num_queries
    ):
        product = make_product(chain)
        options = ProductQueryOptions(include_hierarchy=True, include_taxonomy=True)
        with django_assert_num_queries(1):
            found = repo.get_by_id(product.id, options)
            assert found.brand.name == "Indomie"
            assert found.subcategory.name == "Noodles"


# ===========================================================================
# list / save / delete
# ===========================================================================


class TestList:
    def test_excludes_soft_deleted(self, repo, make_chain, make_product):
        alive = make_product(make_chain())
        make_product(make_chain(variant="Onion")).delete()
        assert repo.list() == [alive]

    def test_filters(self, repo, make_chain, make_product):
        live = make_product(make_chain(), status=ProductStatus.LIVE)
        make_product(make_chain(variant="Onion"))
        assert repo.list({"status": ProductStatus.LIVE}) == [live]


class TestSave:
    def test_stamps_actor(self, repo, chain, make_product):
        product = make_product(chain)
        product.description = "Instant noodles"
        repo.save(product, "user-1", update_fields=["description"])
        product.refresh_from_db()
        assert product.description == "Instant noodles"
        assert product.updated_by == "user-1"


class TestDelete:
    def test_soft_deletes(self, repo, chain, make_product):
        product = make_product(chain)
        assert repo.delete(product.id, "user-5") is True
        product.refresh_from_db()
        assert product.is_deleted
        assert product.deleted_by == "user-5"

    def test_unknown_returns_false(self, repo):
        assert repo.delete(uuid.uuid4()) is False


# ===========================================================================
# Product-specific queries
# ===========================================================================


class TestFindConflicts:
    def test_matches_sku_or_name(self, repo, chain, make_product):
        product = make_product(chain)
        assert repo.find_conflicts([product.sku], []) == [product]
        assert repo.find_conflicts([], [product.name]) == [product]

    def test_excludes_ids(self, repo, chain, make_product):
        product = make_product(chain)
        assert repo.find_conflicts([product.sku], [], exclude_ids=[product.id]) == []

    def test_ignores_soft_deleted(self, repo, chain, make_product):
        product = make_product(chain)
        product.delete()
        assert repo.find_conflicts([product.sku], [product.name]) == []

    def test_empty_input(self, repo):
        assert repo.find_conflicts([], []) == []


class TestListAliveFor:
    def test_only_alive_products_of_entity(self, repo, make_chain, make_product):
        chicken = make_chain()
        onion = make_chain(variant="Onion")
        a = make_product(chicken)
        b = make_product(onion)
        make_product(make_chain(variant="Beef")).delete()

        assert repo.list_alive_for(HierarchyLevel.BRAND, chicken.brand) == [a, b]
        assert repo.list_alive_for(HierarchyLevel.VARIANT, onion.variant) == [b]
