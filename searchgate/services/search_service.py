from typing import Any, Dict, List, Optional, Type

from ..config.search_config import ApiConfig, SearchConfig, SearchTypeConfig
from ..core import constants
from ..core.errors import ValidationError
from ..core.logging import get_logger
from ..core.registry import post_processors
from ..models.schemas import RequestModel, validate
from .elasticsearch_service import ElasticsearchService
from .event_emitter import EventData, EventEmitter
from .query_compiler import CompiledQuery, QueryCompiler
from .response_normalizer import ResponseNormalizer

logger = get_logger(__name__)


class SearchService:
    """Service class for search operations: compile, dispatch, normalize, emit"""

    def __init__(self, search_config: SearchConfig, compiler: QueryCompiler, es_service: ElasticsearchService,
                 normalizer: ResponseNormalizer, emitter: EventEmitter, schemas: Dict[str, Type[RequestModel]]):
        self.search_config = search_config
        self.compiler = compiler
        self.es_service = es_service
        self.normalizer = normalizer
        self.emitter = emitter
        self.schemas = schemas

    def validate(self, data: Optional[Dict[str, Any]], schema_name: str) -> Dict[str, Any]:
        return validate(data, self.schemas[schema_name])

    async def tokens(self, text: str) -> List[str]:
        """Analyzer tokens when an input analyzer is configured, whitespace split otherwise"""
        analyzer = self.search_config.input_analyzer
        if analyzer is None:
            return text.split() or [text]

        response = await self.es_service.analyze(analyzer.index, analyzer.name, text)
        tokens = [token["token"] for token in (response or {}).get("tokens") or [] if token.get("token")]
        return tokens or [text]

    async def request_tokens(self, request: Dict[str, Any]) -> List[str]:
        return await self.tokens(request["text"]) if request.get("text") else []

    async def build_query(self, search_type: SearchTypeConfig, request: Dict[str, Any]) -> CompiledQuery:
        return self.compiler.compile(search_type, request, await self.request_tokens(request))

    @staticmethod
    def search_type_config(api_config: ApiConfig, type_key: str, code: str = "SEARCH_CONFIG_NOT_FOUND") -> SearchTypeConfig:
        search_type = api_config.types.get(type_key)
        if search_type is None:
            raise ValidationError(f"No type config found for: {type_key}", {"code": code, "type": type_key})
        return search_type

    async def search_internal(self, headers: Dict[str, Any], request: Dict[str, Any], api_config: ApiConfig,
                              event_name: str) -> Optional[Dict[str, Any]]:
        """Single type, or fan-out over every type of the API when the type is absent or ``*``"""
        type_key = request.get("type")
        search_types = api_config.types

        if not type_key or type_key == constants.WILDCARD_TYPE:
            post_processor = api_config.multi_response_post_processor
            type_keys = list(search_types)
            # one analysis shared by every type
            tokens = await self.request_tokens(request)
            queries = [self.compiler.compile(search_types[key], request, tokens) for key in type_keys]
            query_languages = queries[0].query_languages if queries else []

            logger.info("multi_search", event_name=event_name, types=type_keys)
            response = await self.es_service.multi_search(queries) if queries else None
            result = self.normalizer.process_multiple(response, search_types, type_keys)
        else:
            search_type = self.search_type_config(api_config, type_key)
            post_processor = search_type.response_post_processor
            query = await self.build_query(search_type, request)
            query_languages = query.query_languages

            logger.info("search", event_name=event_name, type=type_key)
            response = await self.es_service.search(query)
            result = self.normalizer.process_single(response, search_types, type_key)

        self.emitter.emit(event_name, EventData(headers=headers or {}, query_data=request,
                                                query_languages=query_languages, query_result=result))

        if post_processor and request.get("format") == constants.CUSTOM_FORMAT:
            return post_processors.get(post_processor)(result)
        return result

    async def search(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        request = self.validate(data, "search")
        return await self.search_internal(headers, request, self.search_config.search, constants.SEARCH_EVENT)

    async def explain(self, api_config: ApiConfig, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Engine explanation of how document ``id`` scores against the compiled query"""
        search_type = self.search_type_config(api_config, request.get("type"))
        query = await self.build_query(search_type, request)
        for key in ("from", "size", "sort"):
            query.search.pop(key, None)

        response = await self.es_service.explain(request["id"], query)
        return (response or {}).get("explanation")

    async def explain_search(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return await self.explain(self.search_config.search, self.validate(data, "explainSearch"))

    async def term_vectors(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        request = self.validate(data, "termVectors")
        type_config = self.search_config.types[request["type"]]

        response = await self.es_service.term_vectors(type_config.index, type_config.type, request["id"])
        return (response or {}).get("term_vectors")

    async def view(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Every document of a view type that passes the engine filters and the post-filters"""
        request = self.validate(data, "view")
        view_type = self.search_type_config(self.search_config.views, request.get("type"), "VIEW_CONFIG_NOT_FOUND")
        index_type = view_type.index_type

        query = self.compiler.compile_view(view_type, request)
        checks = self.compiler.post_filters(view_type, request)

        result: Dict[str, Any] = {"totalResults": 0, "results": []}

        def collect(response: Dict[str, Any]):
            for hit in (response.get("hits") or {}).get("hits") or []:
                doc = hit.get("_source") or {}
                if all(check(doc) for check in checks):
                    result["totalResults"] += 1
                    result["results"].append(doc)

        await self.es_service.all_pages(index_type.index, index_type.type, query, constants.VIEW_PAGE_SIZE, collect)
        return result
