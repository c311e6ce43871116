"""Unit tests for CacheInvalidator.

Covers:
- Entity types resolve to the cache resources that embed them.
- Pattern deletion on backends with key scanning (django-redis).
- Wholesale clear on backends without it (local memory).
- Store failures are logged and swallowed.
- Post-commit scheduling.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from django.core.cache import caches

from modules.core.cache import CacheInvalidator, cache_key
from modules.core.context import CatalogSettings, ServiceContext

pytestmark = pytest.mark.unit


@pytest.fixture()
def redis_like_cache():
    return MagicMock(spec=["delete_pattern", "clear"])


@pytest.fixture()
def invalidator(redis_like_cache):
    context = ServiceContext(settings=CatalogSettings(cache_key_prefix="cat"))
    return CacheInvalidator(context, cache=redis_like_cache)


class TestCacheKey:
    def test_joins_prefix_resource_and_parts(self):
        assert cache_key("catalog", "brands", "list", 2) == "catalog:brands:list:2"


class TestResourcesFor:
    def test_brand_change_drops_brands_and_products(self, invalidator):
        assert invalidator.resources_for(["brand"]) == ["brands", "products"]

    def test_resources_are_distinct_and_ordered(self, invalidator):
        resources = invalidator.resources_for(["brand", "variant", "product"])
        assert resources == ["brands", "products", "variants"]

    def test_unknown_type_maps_to_itself(self, invalidator):
        assert invalidator.resources_for(["warehouse"]) == ["warehouse"]


class TestInvalidate:
    def test_deletes_by_pattern(self, invalidator, redis_like_cache):
        invalidator.invalidate("pack_type")
        redis_like_cache.delete_pattern.assert_any_call("cat:pack_types:*")
        redis_like_cache.delete_pattern.assert_any_call("cat:products:*")
        assert redis_like_cache.delete_pattern.call_count == 2
        redis_like_cache.clear.assert_not_called()

    def test_store_failure_is_swallowed(self, invalidator, redis_like_cache):
        redis_like_cache.delete_pattern.side_effect = ConnectionError("redis down")
        invalidator.invalidate("brand")  # must not raise
        assert redis_like_cache.delete_pattern.call_count == 2

    def test_backend_without_pattern_support_is_cleared(self):
        cache = caches["default"]
        cache.set("catalog:brands:list", ["Indomie"])
        CacheInvalidator(ServiceContext(), cache=cache).invalidate("brand")
        assert cache.get("catalog:brands:list") is None


class TestInvalidateAfterCommit:
    def test_runs_only_when_transaction_commits(
        self, invalidator, redis_like_cache, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            invalidator.invalidate_after_commit("product")
            redis_like_cache.delete_pattern.assert_not_called()
        assert len(callbacks) == 1
        callbacks[0]()
        redis_like_cache.delete_pattern.assert_called_once_with("cat:products:*")
