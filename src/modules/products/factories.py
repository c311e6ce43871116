"""Wiring of the catalog components.

Every component receives its collaborators (and the ``ServiceContext``)
through its constructor; this module is the one place that assembles
them with the Django-backed implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from modules.catalog.codes import CodeGenerator
from modules.catalog.repositories.django_repository import HierarchyDjangoRepository
from modules.catalog.resolver import EntityResolver
from modules.catalog.services import HierarchyService
from modules.core.audit import DatabaseAuditSink
from modules.core.cache import CacheInvalidator
from modules.core.context import ServiceContext
from modules.core.storage import DjangoBlobStorage
from modules.products.cascade import CascadeUpdater
from modules.products.ingestion import IngestionPipeline
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService


@dataclass(frozen=True)
class CatalogServices:
    context: ServiceContext
    hierarchy: HierarchyService
    products: ProductService
    pipeline: IngestionPipeline
    cascade: CascadeUpdater
    invalidator: CacheInvalidator


def build_catalog_services(
    context: Optional[ServiceContext] = None,
    cache=None,
    storage=None,
) -> CatalogServices:
    """Assemble the services; ``cache`` / ``storage`` default to Django's."""
    context = context or ServiceContext.from_django()
    hierarchy_repository = HierarchyDjangoRepository()
    product_repository = ProductDjangoRepository()
    codes = CodeGenerator()
    invalidator = CacheInvalidator(context, cache=cache)
    audit = DatabaseAuditSink(context)
    blob_storage = DjangoBlobStorage(context, storage=storage)
    resolver = EntityResolver(context, hierarchy_repository)

    cascade = CascadeUpdater(
        context,
        hierarchy_repository,
        product_repository,
        invalidator,
        audit,
        code_generator=codes,
    )
    pipeline = IngestionPipeline(
        context,
        hierarchy_repository,
        product_repository,
        resolver,
        invalidator,
        audit,
        code_generator=codes,
    )
    hierarchy = HierarchyService(
        context,
        hierarchy_repository,
        resolver,
        cascade,
        invalidator,
        audit,
        storage=blob_storage,
    )
    products = ProductService(
        context,
        product_repository,
        hierarchy_repository,
        pipeline,
        invalidator,
        audit,
        storage=blob_storage,
        code_generator=codes,
    )
    return CatalogServices(
        context=context,
        hierarchy=hierarchy,
        products=products,
        pipeline=pipeline,
        cascade=cascade,
        invalidator=invalidator,
    )
