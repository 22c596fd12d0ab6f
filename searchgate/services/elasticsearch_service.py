import hashlib
import json
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from elastic_transport import TransportError
from elasticsearch import ApiError, AsyncElasticsearch

from ..config.settings import settings
from ..core.errors import EngineError
from ..core.logging import get_logger
from .cache_service import CacheService
from .query_compiler import CompiledQuery

logger = get_logger(__name__)

JSON_HEADERS = {"accept": "application/json", "content-type": "application/json"}
NDJSON_HEADERS = {"accept": "application/json", "content-type": "application/x-ndjson"}


def canonical_json(value: Any) -> str:
    """Key-sorted compact JSON, identical for semantically identical documents"""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def query_hash(value: Any) -> str:
    return hashlib.md5(canonical_json(value).encode("utf-8")).hexdigest()


def total_hits(response: Optional[Dict[str, Any]]) -> int:
    """hits.total as a number (older engines report an int, newer ones ``{"value": n}``)"""
    total = ((response or {}).get("hits") or {}).get("total", 0)
    if isinstance(total, dict):
        return total.get("value", 0)
    return total or 0


def bulk_body(queries: List[CompiledQuery]) -> List[Dict[str, Any]]:
    """Header/body pairs for _msearch"""
    lines = []
    for query in queries:
        lines.append({"index": query.index, "type": query.type})
        lines.append(query.search)
    return lines


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


class ElasticsearchService:
    """Service class for Elasticsearch operations with a read-through response cache"""

    def __init__(self, cache: CacheService, client: Optional[AsyncElasticsearch] = None):
        self.client = client or AsyncElasticsearch(
            hosts=[settings.elasticsearch_url],
            basic_auth=settings.elasticsearch_auth,
            request_timeout=settings.elasticsearch_timeout,
        )
        self.cache = cache

    @staticmethod
    def _path(*parts: str) -> str:
        return "/" + "/".join(quote(str(part), safe=",:*") for part in parts)

    async def _request(self, method: str, path: str, body: Any = None,
                       params: Optional[Dict[str, Any]] = None, ndjson: bool = False) -> Any:
        """Perform a raw engine request, mapping every failure to EngineError"""
        headers = NDJSON_HEADERS if ndjson else JSON_HEADERS
        try:
            response = await self.client.perform_request(method, path, params=params, headers=headers, body=body)
        except ApiError as e:
            details = e.body.get("error", e.body) if isinstance(e.body, dict) else e.body
            logger.error("engine_error", method=method, path=path, status=e.meta.status, details=details)
            raise EngineError("Internal Service Error", {"details": details}, status_code=e.meta.status, cause=e) from e
        except TransportError as e:
            logger.error("engine_transport_error", method=method, path=path, error=str(e))
            raise EngineError("Internal Service Error", {"details": str(e)}, cause=e) from e
        return response.body

    async def _cached(self, cache_key: str, start: float) -> Optional[Dict[str, Any]]:
        cached = await self.cache.get(cache_key)
        if cached:
            cached["took"] = _elapsed_ms(start)
        return cached

    async def search(self, query: CompiledQuery) -> Optional[Dict[str, Any]]:
        """Execute one compiled query"""
        start = time.perf_counter()
        uri = self._path(query.index, query.type, "_search")
        cache_key = f"{uri}:{query_hash(query.search)}"

        logger.debug("search", uri=uri, body=query.search)

        cached = await self._cached(cache_key, start)
        if cached:
            logger.info("search_cache_hit", uri=uri, took=cached["took"])
            return cached

        response = await self._request("POST", uri, body=query.search)
        if response:
            await self.cache.set(cache_key, response)
        return response

    async def multi_search(self, queries: List[CompiledQuery]) -> Optional[Dict[str, Any]]:
        """Execute several compiled queries in one _msearch round trip"""
        start = time.perf_counter()
        uri = "/_msearch"
        body = bulk_body(queries)
        cache_key = f"{uri}:{query_hash(body)}"

        logger.debug("multi_search", uri=uri, queries=len(queries))

        cached = await self._cached(cache_key, start)
        if cached:
            for response in cached.get("responses") or []:
                response["took"] = cached["took"]
            logger.info("multi_search_cache_hit", took=cached["took"])
            return cached

        response = await self._request("POST", uri, body=body, ndjson=True)
        if response:
            await self.cache.set(cache_key, response)
        return response

    async def explain(self, doc_id: str, query: CompiledQuery) -> Optional[Dict[str, Any]]:
        uri = self._path(query.index, query.type, doc_id, "_explain")
        return await self._request("POST", uri, body=query.search)

    async def term_vectors(self, index: str, doc_type: str, doc_id: str) -> Optional[Dict[str, Any]]:
        uri = self._path(index, doc_type, doc_id, "_termvectors")
        return await self._request("GET", uri, params={"fields": "*"})

    async def did_you_mean(self, index: str, text: str) -> Optional[Dict[str, Any]]:
        return await self._request("GET", self._path(index, "_didYouMean"), params={"q": text})

    async def analyze(self, index: str, analyzer: str, text: str) -> Optional[Dict[str, Any]]:
        return await self._request("GET", self._path(index, "_analyze"), params={"analyzer": analyzer, "text": text})

    async def get(self, index: str, doc_type: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id"""
        start = time.perf_counter()
        uri = self._path(index, doc_type, doc_id)
        cache_key = hashlib.md5(uri.encode("utf-8")).hexdigest()

        cached = await self._cached(cache_key, start)
        if cached:
            return cached

        response = await self._request("GET", uri)
        if response:
            await self.cache.set(cache_key, response)
        return response

    async def all_pages(self, index: str, doc_type: str, query: Dict[str, Any], page_size: int,
                        on_page: Callable[[Dict[str, Any]], None]) -> int:
        """Fetch page after page until the total reported by page 0 is exhausted"""
        total = 0
        page = 0
        while True:
            search = dict({"from": page * page_size, "size": page_size}, **query)
            response = await self.search(CompiledQuery(index=index, type=doc_type, search=search))
            if not response or "hits" not in response:
                break

            if page == 0:
                total = total_hits(response)

            on_page(response)

            hits = response["hits"].get("hits") or []
            if not hits or total <= page * page_size + len(hits):
                break
            page += 1

        return page + 1

    async def check_index_health(self, indexes: List[str]) -> List[str]:
        """Check which indexes are available and healthy"""
        available_indexes = []
        for index in indexes:
            try:
                if await self.client.indices.exists(index=index):
                    available_indexes.append(index)
            except (ApiError, TransportError) as e:
                logger.warning("index_health_check_failed", index=index, error=str(e))
        return available_indexes

    async def close(self):
        await self.client.close()
