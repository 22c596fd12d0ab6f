from typing import Any, Dict, Optional

from elasticsearch import AsyncElasticsearch

from ..config.search_config import SearchConfig, normalize
from ..config.settings import settings
from ..core.registry import event_handlers
from ..models.schemas import build_schemas
from . import beacon, search_query_recorder  # noqa: F401  registers the built-in event handlers
from .analytics_sink import AnalyticsSinks, HttpSink
from .autocomplete_service import AutoCompleteService
from .cache_service import CacheService
from .elasticsearch_service import ElasticsearchService
from .event_emitter import EventEmitter
from .health_service import HealthService
from .language import LanguageDetector, ScriptLanguageDetector, Transliterator
from .query_compiler import QueryCompiler
from .response_normalizer import ResponseNormalizer
from .search_service import SearchService


def build_sinks() -> AnalyticsSinks:
    beacon_sink = HttpSink(settings.beacon_url, settings.sink_timeout) if settings.beacon_url else None
    return AnalyticsSinks(indexer=HttpSink(settings.indexer_url, settings.sink_timeout), beacon=beacon_sink)


def build_event_emitter(search_config: SearchConfig, sinks: AnalyticsSinks) -> EventEmitter:
    """Instantiate every configured handler; unknown handler names fail here, at startup"""
    emitter = EventEmitter()
    for event_name, handler_names in search_config.event_handlers.items():
        for handler_name in handler_names:
            emitter.register(event_name, event_handlers.get(handler_name)(sinks))
    return emitter


class ServiceContainer:
    """Dependency injection container for managing service instances"""

    def __init__(self, search_config: Optional[SearchConfig] = None, es_client: Optional[AsyncElasticsearch] = None,
                 cache: Optional[CacheService] = None, sinks: Optional[AnalyticsSinks] = None,
                 language_detector: Optional[LanguageDetector] = None,
                 transliterator: Optional[Transliterator] = None):
        self._search_config = search_config or normalize(settings.search_config, settings.instance_name)
        self._cache_service = cache or CacheService()
        self._elasticsearch_service = ElasticsearchService(self._cache_service, es_client)
        self._sinks = sinks or build_sinks()
        self._event_emitter = build_event_emitter(self._search_config, self._sinks)

        compiler = QueryCompiler(self._search_config, language_detector or ScriptLanguageDetector(), transliterator)
        self._search_service = SearchService(
            self._search_config,
            compiler,
            self._elasticsearch_service,
            ResponseNormalizer(self._search_config),
            self._event_emitter,
            build_schemas(self._search_config),
        )
        self._autocomplete_service = AutoCompleteService(self._search_service)
        self._health_service = HealthService(self._search_config, self._elasticsearch_service, self._cache_service)

    @property
    def search_config(self) -> SearchConfig:
        return self._search_config

    @property
    def elasticsearch_service(self) -> ElasticsearchService:
        return self._elasticsearch_service

    @property
    def event_emitter(self) -> EventEmitter:
        return self._event_emitter

    @property
    def search_service(self) -> SearchService:
        return self._search_service

    @property
    def autocomplete_service(self) -> AutoCompleteService:
        return self._autocomplete_service

    @property
    def health_service(self) -> HealthService:
        return self._health_service

    async def close(self):
        await self._event_emitter.drain()
        await self._elasticsearch_service.close()
        await self._cache_service.close()
        await self._sinks.close()


_state: Dict[str, Any] = {}


def get_container() -> ServiceContainer:
    """Global container, built on first use from settings"""
    if "container" not in _state:
        _state["container"] = ServiceContainer()
    return _state["container"]
