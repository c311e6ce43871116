"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that aggregate
repository interfaces extend.  Service-layer code depends on this
abstraction, never on Django ORM directly.

Every write takes the acting user id so the repository can stamp
``created_by`` / ``updated_by`` / ``deleted_by`` on the row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` represents the entity managed by the repository
    (e.g. ``Product``).
    """

    @abstractmethod
    def get_by_id(self, id: Any, options: Any = None) -> Optional[T]:
        """Retrieve an alive entity by its primary key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """List alive entities with optional filters."""

    @abstractmethod
    def save(
        self,
        entity: T,
        actor_id: Optional[str] = None,
        update_fields: Optional[List[str]] = None,
    ) -> T:
        """Persist (create or update) an entity on behalf of ``actor_id``."""

    @abstractmethod
    def delete(self, id: Any, actor_id: Optional[str] = None) -> bool:
        """Soft-delete an entity by ID; ``False`` when nothing was deleted."""
