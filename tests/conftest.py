import os

# Settings are read at import time; keep unit tests independent of the caller's environment.
os.environ.pop("SEARCH_CONFIG_PATH", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("BEACON_URL", None)
os.environ.setdefault("DEBUG", "false")

import copy
from types import SimpleNamespace
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from searchgate.config.search_config import normalize
from searchgate.services.analytics_sink import AnalyticsSinks
from searchgate.services.cache_service import CacheService
from searchgate.services.container import ServiceContainer

RAW_CONFIG: Dict[str, Any] = {
    "instanceName": "Shop",
    "types": {
        "product": {
            "name": "Products",
            "filters": {
                "brand": {"field": "brand"},
                "category": {"field": "category", "type": "facet"},
                "inStock": {"field": "inStock", "type": "post", "predicate": "equals"},
            },
            "sort": [{"price": {"default": False}}, {"popularity": True}],
            "queryFields": [{"field": "name", "weight": 2}],
        },
        "brand": {
            "queryFields": [{"field": "name"}],
        },
    },
    "search": {
        "defaultType": "*",
        "types": {
            "product": {
                "indexType": "product",
                "queryFields": [{"field": "name", "weight": 2}, {"field": "sku", "noFuzzy": True}],
                "facets": [
                    {
                        "key": "price",
                        "type": "ranges",
                        "field": "price",
                        "ranges": [{"key": "cheap", "to": 100}, {"key": "premium", "from": 100}],
                    },
                    {"key": "category", "type": "field", "field": "category"},
                ],
            },
            "brand": {"indexType": "brand"},
        },
    },
    "autocomplete": {
        "types": {
            "product": {"indexType": "product"},
        },
    },
    "views": {
        "types": {
            "product": {"indexType": "product"},
        },
    },
}


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis"""

    def __init__(self):
        self.store: Dict[str, Any] = {}
        self.expiry: Dict[str, Optional[int]] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    async def ping(self):
        return True

    async def aclose(self):
        return None


def engine_response(body: Any) -> SimpleNamespace:
    """Shape of elastic_transport.ObjectApiResponse that the dispatcher reads"""
    return SimpleNamespace(body=body)


def hits_response(hits, total=None, took=3, aggregations=None) -> Dict[str, Any]:
    response = {
        "took": took,
        "hits": {"total": {"value": len(hits) if total is None else total}, "hits": hits},
    }
    if aggregations is not None:
        response["aggregations"] = aggregations
    return response


def hit(doc_id: str, score: float = 1.0, **source) -> Dict[str, Any]:
    return {"_id": doc_id, "_score": score, "_source": source}


@pytest.fixture
def raw_config():
    return copy.deepcopy(RAW_CONFIG)


@pytest.fixture
def search_config(raw_config):
    return normalize(raw_config)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return CacheService(redis_url="redis://test", key_prefix="test/", ttl_seconds=300, client=fake_redis)


@pytest.fixture
def disabled_cache():
    return CacheService(redis_url="", key_prefix="")


@pytest.fixture
def es_client():
    client = MagicMock()
    client.perform_request = AsyncMock(return_value=engine_response(hits_response([])))
    client.indices.exists = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


@pytest.fixture
def sinks():
    indexer = MagicMock()
    indexer.send = AsyncMock(return_value=True)
    indexer.close = AsyncMock()
    return AnalyticsSinks(indexer=indexer)


@pytest.fixture
def container(search_config, es_client, disabled_cache, sinks):
    return ServiceContainer(search_config=search_config, es_client=es_client, cache=disabled_cache, sinks=sinks)
