from datetime import datetime
from typing import Any, Dict

from ..config.search_config import SearchConfig
from ..config.settings import settings
from ..core.logging import get_logger
from ..models.schemas import HealthResponse
from .cache_service import CacheService
from .elasticsearch_service import ElasticsearchService

logger = get_logger(__name__)


class HealthService:
    """Service class for health checks and system status"""

    def __init__(self, search_config: SearchConfig, es_service: ElasticsearchService, cache: CacheService):
        self.search_config = search_config
        self.es_service = es_service
        self.cache = cache

    def configured_indexes(self):
        return sorted({type_config.index for type_config in self.search_config.types.values()})

    async def get_health_status(self) -> HealthResponse:
        """Get comprehensive health status of the application"""
        available_indexes = await self.es_service.check_index_health(self.configured_indexes())
        cache_available = await self.cache.ping()

        status = "OK" if available_indexes else "DEGRADED"
        if status != "OK":
            logger.warning("health_degraded", indexes=self.configured_indexes())

        return HealthResponse(
            status=status,
            timestamp=datetime.now().isoformat(),
            types_configured=sorted(self.search_config.types),
            indexes_available=available_indexes,
            cache_available=cache_available,
        )

    async def get_detailed_status(self) -> Dict[str, Any]:
        """Health status plus the configuration the service runs with"""
        health = await self.get_health_status()
        return {
            **health.model_dump(),
            "elasticsearch": {
                "url": settings.elasticsearch_url,
                "configured_indexes": self.configured_indexes(),
            },
            "configuration": {
                "instance_name": self.search_config.instance_name,
                "search_types": sorted(self.search_config.search.types),
                "autocomplete_types": sorted(self.search_config.autocomplete.types),
                "view_types": sorted(self.search_config.views.types),
                "event_handlers": self.search_config.event_handlers,
                "cache_enabled": self.cache.enabled,
            },
            "api": {
                "title": settings.api_title,
                "version": settings.api_version,
            },
        }
