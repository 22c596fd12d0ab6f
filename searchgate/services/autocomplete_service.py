from typing import Any, Dict, Optional

from ..core import constants
from ..core.errors import ValidationError
from .response_normalizer import suggested_queries_merge
from .search_service import SearchService


class AutoCompleteService:
    """Service class for autocomplete functionality"""

    def __init__(self, search_service: SearchService):
        self.search_service = search_service
        self.search_config = search_service.search_config
        self.es_service = search_service.es_service

    async def autocomplete(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        request = self.search_service.validate(data, "autocomplete")
        return await self.search_service.search_internal(headers, request, self.search_config.autocomplete,
                                                         constants.AUTOCOMPLETE_EVENT)

    async def suggested_queries(self, headers: Dict[str, Any],
                                data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Autocomplete across types, flattened to the results above the relevancy deflection point"""
        request = self.search_service.validate(data, "autocomplete")
        response = await self.search_service.search_internal(headers, request, self.search_config.autocomplete,
                                                             constants.SUGGESTED_QUERIES_EVENT)
        return suggested_queries_merge(response)

    async def explain_autocomplete(self, headers: Dict[str, Any],
                                   data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        request = self.search_service.validate(data, "explainAutocomplete")
        return await self.search_service.explain(self.search_config.autocomplete, request)

    async def did_you_mean(self, headers: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Spelling suggestions from one type's index, or every index except the query log"""
        request = self.search_service.validate(data, "didYouMean")
        type_key = request.get("type")
        types = self.search_config.types

        if not type_key or type_key == constants.WILDCARD_TYPE:
            index = ",".join(
                type_config.index for type_config in types.values()
                if constants.SEARCH_QUERY_STORE not in type_config.index
            )
            if not index:
                return None
        else:
            type_config = types.get(type_key)
            if type_config is None:
                raise ValidationError(f"No type config found for: {type_key}",
                                      {"code": "TYPE_CONFIG_NOT_FOUND", "type": type_key})
            index = type_config.index

        return await self.es_service.did_you_mean(index, request["text"])
