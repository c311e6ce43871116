"""Post-commit, best-effort invalidation of catalog read caches.

Granularity is coarse: a mutation of an entity type drops every cached key
under that type's prefix (and under the prefixes of the types that embed it,
e.g. products embed brand names).  Keys are laid out as
``<CACHE_KEY_PREFIX>:<resource>:<anything>``; readers build them with
``cache_key``.

Invalidation never raises: a cache-store failure is logged and swallowed,
and it is never retried synchronously.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Iterable, Tuple

from django.db import transaction

if TYPE_CHECKING:
    from modules.core.context import ServiceContext

# entity type -> cache resources that must be dropped when it changes
RELATED_RESOURCES: dict[str, Tuple[str, ...]] = {
    "manufacturer": ("manufacturers", "brands", "products"),
    "brand": ("brands", "products"),
    "variant": ("variants", "products"),
    "pack_size": ("pack_sizes", "products"),
    "pack_type": ("pack_types", "products"),
    "category": ("categories", "subcategories", "products"),
    "subcategory": ("subcategories", "categories", "products"),
    "product": ("products",),
}


def cache_key(prefix: str, resource: str, *parts: object) -> str:
    """Build a cache key that ``CacheInvalidator`` knows how to drop."""
    return ":".join([prefix, resource, *(str(part) for part in parts)])


class CacheInvalidator:
    """Drops cached read models by entity-type prefix."""

    def __init__(self, context: ServiceContext, cache=None) -> None:
        if cache is None:
            from django.core.cache import cache as default_cache

            cache = default_cache
        self._cache = cache
        self._prefix = context.settings.cache_key_prefix
        self._log = context.logger_for("cache_invalidator")

    def resources_for(self, entity_types: Iterable[str]) -> list[str]:
        """Resolve entity types to the distinct cache resources they affect."""
        resources: list[str] = []
        for entity_type in entity_types:
            for resource in RELATED_RESOURCES.get(entity_type, (entity_type,)):
                if resource not in resources:
                    resources.append(resource)
        return resources

    def invalidate(self, *entity_types: str) -> None:
        for resource in self.resources_for(entity_types):
            pattern = cache_key(self._prefix, resource, "*")
            try:
                self._delete_pattern(pattern)
            except Exception as exc:  # noqa: BLE001
                self._log.warning(
                    "cache.invalidation_failed",
                    pattern=pattern,
                    error=str(exc),
                )
                continue
            self._log.info("cache.invalidated", pattern=pattern)

    def invalidate_after_commit(self, *entity_types: str) -> None:
        """Schedule ``invalidate`` for when the current transaction commits.

        Runs immediately when no transaction is open.
        """
        transaction.on_commit(partial(self.invalidate, *entity_types))

    def _delete_pattern(self, pattern: str) -> None:
        delete_pattern = getattr(self._cache, "delete_pattern", None)
        if delete_pattern is not None:
            # django-redis: SCAN + DEL on the matching keys
            delete_pattern(pattern)
            return
        # Backends without key scanning (local memory in tests) can only
        # be dropped wholesale.
        self._cache.clear()
