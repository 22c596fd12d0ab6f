"""
Declarative search configuration.

``normalize(raw)`` runs once at startup: it merges the built-in defaults into the
raw (JSON) config, derives index/type identifiers, resolves every ``indexType``
reference and returns a frozen ``SearchConfig``. Request handling never sees raw
config.

Raw config shape (camelCase keys)::

    {
      "instanceName": "shop",
      "types": {"product": {"filters": {...}, "sort": ["price"]}},
      "search": {"defaultType": "*", "types": {"product": {"indexType": "product", ...}}},
      "autocomplete": {...},
      "views": {...},
      "matchTypeBoosts": {"exact": 1.0, "edgeGram": 0.9, ...},
      "eventHandlers": {"search": ["beaconSearchResult"]}
    }
"""

import copy
import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..core import constants
from ..core.errors import ConfigError
from ..core.registry import post_processors, predicates, transforms


class ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class FieldConfig(ConfigModel):
    field: str
    weight: float = 1.0
    vernacular_only: bool = False
    nested_path: Optional[str] = None
    no_fuzzy: bool = False
    term_query: bool = False


class FilterConfig(FieldConfig):
    term_query: bool = True
    default_value: Any = None
    value: Optional[str] = None
    type: Optional[Literal["post", "facet"]] = None
    predicate: Optional[str] = None


class SortConfig(ConfigModel):
    field: str
    order: Optional[Literal["ASC", "DESC"]] = None
    default: bool = True


class FacetRange(ConfigModel):
    key: Optional[str] = None
    from_: Any = Field(None, alias="from")
    to: Any = None


class FacetFilter(ConfigModel):
    key: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None


class FacetConfig(ConfigModel):
    # fields are optional here so that misconfiguration is reported per facet key
    key: Optional[str] = None
    type: Optional[str] = None
    field: Optional[str] = None
    ranges: Optional[List[FacetRange]] = None
    filters: Optional[List[FacetFilter]] = None
    nested_path: Optional[str] = None


class TypeConfig(ConfigModel):
    type: str
    index: str
    name: Optional[str] = None
    filters: Dict[str, FilterConfig] = {}
    sort: List[SortConfig] = []
    query_fields: Optional[List[FieldConfig]] = None

    @property
    def display_name(self) -> str:
        return self.name or self.type


class SearchTypeConfig(ConfigModel):
    index_type: TypeConfig
    query_fields: Optional[List[FieldConfig]] = None
    filters: Optional[Dict[str, FilterConfig]] = None
    sort: Optional[List[SortConfig]] = None
    facets: Optional[List[FacetConfig]] = None
    minimum_should_match: Optional[Union[int, str]] = None
    response_post_processor: Optional[str] = None

    @property
    def effective_query_fields(self) -> List[FieldConfig]:
        return self.query_fields or self.index_type.query_fields or []

    @property
    def effective_filters(self) -> Dict[str, FilterConfig]:
        return self.filters if self.filters is not None else self.index_type.filters

    @property
    def effective_sort(self) -> List[SortConfig]:
        return self.sort if self.sort is not None else self.index_type.sort

    @property
    def lang_filter(self) -> FilterConfig:
        return self.effective_filters.get(constants.LANG_FILTER) or self.index_type.filters[constants.LANG_FILTER]


class ApiConfig(ConfigModel):
    default_type: Optional[str] = constants.WILDCARD_TYPE
    types: Dict[str, SearchTypeConfig] = {}
    multi_response_post_processor: Optional[str] = None


class MatchTypeBoosts(ConfigModel):
    exact: float = 1.0
    edge_gram: float = 0.9
    phonetic: float = 0.7
    phonetic_edge_gram: float = 0.6
    exact_edit: float = Field(0.8, alias="exact_edit")
    edge_gram_edit: float = Field(0.5, alias="edgeGram_edit")


class InputAnalyzer(ConfigModel):
    index: str
    name: str


class SearchConfig(ConfigModel):
    instance_name: str
    types: Dict[str, TypeConfig]
    autocomplete: ApiConfig
    search: ApiConfig
    views: ApiConfig
    match_type_boosts: MatchTypeBoosts = MatchTypeBoosts()
    default_sort_order: Literal["ASC", "DESC"] = constants.DESC_SORT_ORDER
    event_handlers: Dict[str, List[str]] = {}
    input_analyzer: Optional[InputAnalyzer] = None

    def api(self, name: str) -> ApiConfig:
        return getattr(self, name)


LANG_FILTER_CONFIG = {"field": "_lang", "termQuery": True, "value": "lang"}

DEFAULT_EVENT_HANDLERS = {constants.SEARCH_EVENT: ["searchQueryRecorder"]}


def default_config(instance_name: str) -> Dict[str, Any]:
    """Built-in types and API sections merged under every instance config"""
    return {
        "types": {
            constants.SEARCH_QUERY_TYPE: {
                "type": constants.SEARCH_QUERY_TYPE,
                "index": f"{instance_name.lower()}:{constants.SEARCH_QUERY_STORE}",
                "filters": {
                    constants.LANG_FILTER: dict(LANG_FILTER_CONFIG),
                    "hasResults": {"field": "hasResults", "termQuery": True, "defaultValue": True},
                },
            }
        },
        "autocomplete": {
            "defaultType": constants.WILDCARD_TYPE,
            "types": {
                constants.SEARCH_QUERY_TYPE: {
                    "indexType": constants.SEARCH_QUERY_TYPE,
                    "queryFields": [
                        {"field": "unicodeQuery", "vernacularOnly": True, "weight": 10},
                        {"field": "query", "weight": 9.5},
                    ],
                }
            },
        },
        "search": {"defaultType": constants.WILDCARD_TYPE},
        "views": {
            "types": {
                constants.SEARCH_QUERY_TYPE: {
                    "indexType": constants.SEARCH_QUERY_TYPE,
                    "sort": {"count": True},
                    "filters": {"hasResults": {"field": "hasResults", "termQuery": True}},
                }
            }
        },
    }


def merge_defaults(target: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively fill keys missing (or None) in ``target`` from ``defaults``"""
    for key, default in defaults.items():
        if target.get(key) is None:
            target[key] = copy.deepcopy(default)
        elif isinstance(target[key], dict) and isinstance(default, dict):
            merge_defaults(target[key], default)
    return target


def snake_case(value: str) -> str:
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    return re.sub(r"[^a-zA-Z0-9]+", "_", value).strip("_").lower()


def normalize_sort(raw: Any) -> List[Dict[str, Any]]:
    """Accept ``["a"]``, ``{"a": true}``, ``[{"a": {"default": true}}]`` or ``[{"field": "a"}]``"""
    if raw is None:
        return []
    entries = raw if isinstance(raw, list) else [raw]
    sorts = []
    for entry in entries:
        if isinstance(entry, str):
            sorts.append({"field": entry})
        elif isinstance(entry, dict) and "field" in entry:
            sorts.append(dict(entry))
        elif isinstance(entry, dict):
            for field, value in entry.items():
                if isinstance(value, dict):
                    sorts.append({"field": field, "order": value.get("order"), "default": bool(value.get("default"))})
                else:
                    sorts.append({"field": field, "default": bool(value)})
        else:
            raise ConfigError("Invalid sort entry", {"code": "INVALID_SORT_CONFIG", "sort": entry})
    return sorts


def _resolve_type(raw_type: Dict[str, Any], key: str, instance_name: str, indices: Dict[str, Any]) -> Dict[str, Any]:
    raw_type = dict(raw_type)
    raw_type.setdefault("type", key)

    if not raw_type.get("index"):
        index = indices.get(raw_type["type"])
        if not index:
            index = indices[raw_type["type"]] = {
                "store": f"{instance_name.lower()}:{snake_case(raw_type['type'])}_store"
            }
        raw_type["index"] = index["store"]

    sort = normalize_sort(raw_type.get("sort"))
    if not any(s["field"] == constants.SCORE_SORT_FIELD for s in sort):
        sort.append({"field": constants.SCORE_SORT_FIELD})
    raw_type["sort"] = sort

    filters = dict(raw_type.get("filters") or {})
    filters.setdefault(constants.LANG_FILTER, dict(LANG_FILTER_CONFIG))
    raw_type["filters"] = filters
    return raw_type


def _check_filters(filters: Optional[Dict[str, FilterConfig]]):
    for key, filter_config in (filters or {}).items():
        transforms.require(filter_config.value)
        if filter_config.type == constants.POST_FILTER_TYPE:
            if not filter_config.predicate:
                raise ConfigError(f"No predicate defined for post filter: {key}",
                                  {"code": "NO_POST_FILTER_PREDICATE", "filter": key})
            predicates.require(filter_config.predicate)


def _resolve_api(name: str, raw_api: Dict[str, Any], types: Dict[str, TypeConfig]) -> ApiConfig:
    search_types = {}
    for key, raw_search_type in (raw_api.get("types") or {}).items():
        raw_search_type = dict(raw_search_type)
        index_type = raw_search_type.get("indexType", key)
        if isinstance(index_type, dict):
            index_type = index_type.get("type")
        type_config = types.get(index_type)
        if type_config is None:
            raise ConfigError(f"No type config found for {name}.{key}: {index_type}",
                              {"code": "TYPE_CONFIG_NOT_FOUND", "api": name, "type": key, "indexType": index_type})
        raw_search_type["indexType"] = type_config

        if "sort" in raw_search_type:
            raw_search_type["sort"] = normalize_sort(raw_search_type["sort"])
        facets = raw_search_type.get("facets")
        if isinstance(facets, dict):
            raw_search_type["facets"] = [facets]

        search_type = SearchTypeConfig.model_validate(raw_search_type)
        _check_filters(search_type.filters)
        post_processors.require(search_type.response_post_processor)
        search_types[key] = search_type

    default_type = raw_api.get("defaultType", constants.WILDCARD_TYPE)
    if default_type not in (None, constants.WILDCARD_TYPE) and default_type not in search_types:
        raise ConfigError(f"Default type of {name} is not configured: {default_type}",
                          {"code": "DEFAULT_TYPE_NOT_FOUND", "api": name, "type": default_type})

    api = ApiConfig.model_validate(dict(raw_api, types=search_types, defaultType=default_type))
    post_processors.require(api.multi_response_post_processor)
    return api


def _resolve_event_handlers(raw_handlers: Optional[Dict[str, Any]]) -> Dict[str, List[str]]:
    handlers = {event: list(names) for event, names in DEFAULT_EVENT_HANDLERS.items()}
    for event, names in (raw_handlers or {}).items():
        if event not in constants.VALID_EVENTS:
            raise ConfigError(f"Unknown event name: {event}",
                              {"code": "UNKNOWN_EVENT", "event": event, "valid": constants.VALID_EVENTS})
        names = names if isinstance(names, list) else [names]
        handlers.setdefault(event, []).extend(names)
    return handlers


def normalize(raw_config: Optional[Dict[str, Any]], instance_name: Optional[str] = None) -> SearchConfig:
    """Apply defaults to a raw search config and return the immutable SearchConfig"""
    raw = copy.deepcopy(raw_config or {})
    instance_name = raw.get("instanceName") or instance_name or "default"

    merge_defaults(raw, default_config(instance_name))

    analyzer = raw.get("inputAnalyzer")
    if analyzer is not None and not (isinstance(analyzer, dict) and analyzer.get("index") and analyzer.get("name")):
        raise ConfigError("inputAnalyzer must define index and name",
                          {"code": "INVALID_INPUT_ANALYZER", "inputAnalyzer": analyzer})

    try:
        indices = dict(raw.get("indices") or {})
        types = {}
        for key, raw_type in raw["types"].items():
            type_config = TypeConfig.model_validate(_resolve_type(raw_type, key, instance_name, indices))
            _check_filters(type_config.filters)
            types[key] = type_config

        config = SearchConfig(
            instance_name=instance_name,
            types=types,
            autocomplete=_resolve_api(constants.AUTOCOMPLETE_API, raw["autocomplete"], types),
            search=_resolve_api(constants.SEARCH_API, raw["search"], types),
            views=_resolve_api(constants.VIEWS_API, raw["views"], types),
            match_type_boosts=MatchTypeBoosts.model_validate(raw.get("matchTypeBoosts") or {}),
            default_sort_order=raw.get("defaultSortOrder") or constants.DESC_SORT_ORDER,
            event_handlers=_resolve_event_handlers(raw.get("eventHandlers")),
            input_analyzer=analyzer,
        )
    except PydanticValidationError as e:
        raise ConfigError("Invalid search config", {"code": "INVALID_SEARCH_CONFIG", "errors": e.errors()}) from e

    # compile every facet once so misconfiguration fails at startup
    from ..services.query_compiler import build_facets

    for api_name in (constants.AUTOCOMPLETE_API, constants.SEARCH_API, constants.VIEWS_API):
        for search_type in config.api(api_name).types.values():
            build_facets(search_type)

    return config
