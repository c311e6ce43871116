"""Product repository interface.

Extends ``IRepository[Product]`` with the look-ups required by code
derivation (SKU / name collisions) and the rename cascade.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.levels import HierarchyLevel
    from modules.catalog.models import HierarchyModel
    from modules.products.models import Product
    from modules.products.queries import ProductQueryOptions


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_by_id(
        self, id: Any, options: Optional[ProductQueryOptions] = None
    ) -> Optional[Product]:
        """Retrieve a product by primary key (alive only unless options say otherwise)."""

    @abstractmethod
    def find_conflicts(
        self,
        skus: Iterable[str],
        names: Iterable[str],
        exclude_ids: Iterable[Any] = (),
    ) -> List[Product]:
        """Alive products holding any of ``skus`` or ``names``.

        Products in ``exclude_ids`` are ignored, so a product never
        collides with its own current codes.
        """

    @abstractmethod
    def list_alive_for(
        self, level: HierarchyLevel, entity: HierarchyModel
    ) -> List[Product]:
        """Alive products whose chain includes ``entity`` at ``level``.

        The name-bearing relations are loaded with the products.
        """
