from decimal import Decimal
from types import SimpleNamespace

import pytest

from modules.catalog.codes import CodeGenerator
from modules.catalog.levels import HierarchyLevel
from modules.catalog.repositories.django_repository import HierarchyDjangoRepository
from modules.core.context import CatalogSettings, ServiceContext
from modules.products.factories import build_catalog_services
from modules.products.models import Product


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def catalog_context():
    """Context with default catalog settings, independent of Django settings."""
    return ServiceContext(settings=CatalogSettings())


@pytest.fixture()
def services(catalog_context):
    """Fully wired catalog services backed by the test database."""
    return build_catalog_services(catalog_context)


@pytest.fixture()
def make_chain():
    """Factory creating Manufacturer -> ... -> PackType plus a category."""
    repo = HierarchyDjangoRepository()

    def _make(
        manufacturer="Dufil Prima Foods",
        brand="Indomie",
        variant="Chicken",
        pack_size="70g",
        pack_type="Single Pack",
        category="Food",
        subcategory="Noodles",
    ):
        def _find_or_create(level, name, parent):
            existing = repo.find_active_sibling(level, parent, name.strip().lower())
            return existing or repo.create(level, parent, "tester", name=name)

        m = _find_or_create(HierarchyLevel.MANUFACTURER, manufacturer, None)
        b = _find_or_create(HierarchyLevel.BRAND, brand, m)
        v = _find_or_create(HierarchyLevel.VARIANT, variant, b)
        ps = _find_or_create(HierarchyLevel.PACK_SIZE, pack_size, v)
        pt = _find_or_create(HierarchyLevel.PACK_TYPE, pack_type, v)
        c = _find_or_create(HierarchyLevel.CATEGORY, category, None)
        sc = _find_or_create(HierarchyLevel.SUBCATEGORY, subcategory, c) if subcategory else None
        return SimpleNamespace(
            manufacturer=m,
            brand=b,
            variant=v,
            pack_size=ps,
            pack_type=pt,
            category=c,
            subcategory=sc,
        )

    return _make


@pytest.fixture()
def make_product():
    """Factory persisting a product whose codes derive from ``chain``."""

    def _make(chain, **overrides):
        name, sku = CodeGenerator().derive(
            chain.brand, chain.variant, chain.pack_size, chain.pack_type
        )
        fields = {
            "name": name,
            "sku": sku,
            "price": Decimal("1.50"),
            "manufacturer": chain.manufacturer,
            "brand": chain.brand,
            "variant": chain.variant,
            "pack_size": chain.pack_size,
            "pack_type": chain.pack_type,
            "category": chain.category,
            "subcategory": chain.subcategory,
        }
        fields.update(overrides)
        return Product.objects.create(**fields)

    return _make
