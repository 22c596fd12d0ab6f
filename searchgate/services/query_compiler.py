"""
Compiles a validated request plus a search type's configuration into an
Elasticsearch query document.

The compiled body has the shape::

    {
      "from": page * count, "size": count, "sort": [...],
      "query": {"function_score": {"query": {"bool": {must|should, filter}},
                                   "field_value_factor": {"field": "_weight", ...}}},
      "post_filter": {...},
      "aggs": {...}
    }
"""

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.search_config import (
    FacetConfig,
    FieldConfig,
    FilterConfig,
    SearchConfig,
    SearchTypeConfig,
    SortConfig,
)
from ..core import constants
from ..core.errors import ConfigError
from ..core.registry import predicates, transforms, unique
from .language import LanguageDetector, Transliterator, is_vernacular

WEIGHT_FACTOR = 2.0

PHONETIC_ENCODINGS = ["soundex", "dm", "bm"]


@dataclass
class CompiledQuery:
    index: str
    type: str
    search: Dict[str, Any]
    query_languages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "type": self.type, "search": self.search, "queryLanguages": self.query_languages}


def compact(document: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None or an empty container"""
    return {k: v for k, v in document.items() if v is not None and v != {} and v != []}


def _facet_error(message: str, code: str, facet_config: FacetConfig) -> ConfigError:
    return ConfigError(message, {"code": code, "facetName": facet_config.key, "facetType": facet_config.type})


def build_facet(facet_config: FacetConfig) -> Tuple[str, Dict[str, Any]]:
    """Aggregation for one facet; misconfiguration raises ConfigError naming the facet"""
    if not facet_config.key:
        raise _facet_error("No name defined for facet", "NO_FACET_NAME_DEFINED", facet_config)

    if not facet_config.type:
        raise _facet_error(f"No facet type defined for facet: {facet_config.key}", "NO_FACET_TYPE_DEFINED", facet_config)

    if facet_config.type in (constants.FIELD_FACET, constants.RANGES_FACET) and not facet_config.field:
        raise _facet_error(f"No facet field defined for facet: {facet_config.key}", "NO_FACET_FIELD_DEFINED", facet_config)

    if facet_config.type == constants.FIELD_FACET:
        aggregation = {"terms": {"field": facet_config.field}}
    elif facet_config.type == constants.RANGES_FACET:
        if not facet_config.ranges:
            raise _facet_error(f"No ranges defined for range type facet: {facet_config.key}",
                               "NO_RANGES_DEFINED", facet_config)

        ranges = []
        for facet_range in facet_config.ranges:
            if not facet_range.key:
                raise _facet_error(f"No range facet key defined for facet: {facet_config.key}",
                                   "NO_RANGE_FACET_KEY_DEFINED", facet_config)
            if facet_range.from_ is None and facet_range.to is None:
                raise _facet_error(f"None of range from & to defined for facet: {facet_config.key}",
                                   "NO_RANGE_ENDS_DEFINED", facet_config)
            ranges.append(compact({"key": facet_range.key, "from": facet_range.from_, "to": facet_range.to}))

        aggregation = {"range": {"field": facet_config.field, "ranges": ranges}}
    elif facet_config.type == constants.FILTERS_FACET:
        if not facet_config.filters:
            raise _facet_error(f"No filters defined for filters type facet: {facet_config.key}",
                               "NO_FILTERS_DEFINED", facet_config)

        filters = {}
        for facet_filter in facet_config.filters:
            if not facet_filter.key or not facet_filter.filter:
                raise _facet_error(f"Incomplete filter definition for facet: {facet_config.key}",
                                   "INCOMPLETE_FACET_FILTER", facet_config)
            filters[facet_filter.key] = facet_filter.filter

        aggregation = {"filters": {"filters": filters}}
    else:
        raise _facet_error(f"Unknown facet type for facet: {facet_config.key}", "UNKNOWN_FACET_TYPE", facet_config)

    if facet_config.nested_path:
        aggregation = {"nested": {"path": facet_config.nested_path}, "aggs": {"nested": aggregation}}

    return facet_config.key, aggregation


def build_facets(search_type: SearchTypeConfig) -> Optional[Dict[str, Any]]:
    if not search_type.facets:
        return None

    facets = {}
    for facet_config in search_type.facets:
        key, aggregation = build_facet(facet_config)
        facets[key] = aggregation
    return facets


class QueryCompiler:
    """Builds engine queries from search type configs and validated requests"""

    def __init__(self, search_config: SearchConfig, language_detector: Optional[LanguageDetector] = None,
                 transliterator: Optional[Transliterator] = None):
        self.search_config = search_config
        self.boosts = search_config.match_type_boosts
        self.language_detector = language_detector
        self.transliterator = transliterator

    # -- field level -------------------------------------------------------

    def constant_score_query(self, field_config: FieldConfig, query: Dict[str, Any],
                             boost_multiplier: float = 1.0) -> Dict[str, Any]:
        boost = boost_multiplier * field_config.weight
        if boost == 1.0:
            return query
        return {"constant_score": {"filter": query, "boost": boost}}

    def wrap_query(self, field_config: FieldConfig, query: Dict[str, Any], boost_multiplier: float = 1.0,
                   no_constant_score: bool = False) -> Dict[str, Any]:
        if field_config.nested_path:
            query = {"nested": {"path": field_config.nested_path, "query": query}}

        if no_constant_score:
            return query

        return self.constant_score_query(field_config, query, boost_multiplier)

    def match_query(self, field_config: FieldConfig, text: str, boost_multiplier: float = 1.0,
                    fuzziness: Optional[int] = None, field_name: Optional[str] = None,
                    no_constant_score: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": text}
        if fuzziness is not None:
            body["fuzziness"] = fuzziness
        if fuzziness:
            body["prefix_length"] = 2

        query = {"match": {field_name or field_config.field: body}}
        return self.wrap_query(field_config, query, boost_multiplier, no_constant_score)

    def term_query(self, field_config: FieldConfig, term: Any, boost_multiplier: float = 1.0,
                   no_constant_score: bool = False) -> Dict[str, Any]:
        query_type = "terms" if isinstance(term, list) else "term"
        query = {query_type: {field_config.field: term}}
        return self.wrap_query(field_config, query, boost_multiplier, no_constant_score)

    def query(self, field_config: FieldConfig, text: Any) -> Dict[str, Any]:
        if field_config.term_query:
            return self.term_query(field_config, text)
        return self.match_query(field_config, text)

    def phonetic_query(self, field_config: FieldConfig, text: str, prefix: str,
                       boost_multiplier: float) -> Dict[str, Any]:
        """At least two of the three phonetic encodings have to agree"""
        should = [
            self.match_query(field_config, text, fuzziness=0, field_name=f"{field_config.field}.{prefix}_{encoding}",
                             no_constant_score=True)
            for encoding in PHONETIC_ENCODINGS
        ]
        return self.constant_score_query(field_config, {"bool": {"should": should, "minimum_should_match": 2}},
                                         boost_multiplier)

    def fuzzy_queries(self, field_config: FieldConfig, text: str) -> List[Dict[str, Any]]:
        field_name = field_config.field
        boosts = self.boosts

        queries = [
            self.match_query(field_config, text, boosts.exact),
            self.match_query(field_config, text, boosts.edge_gram, 0, f"{field_name}.edgeGram"),
            self.phonetic_query(field_config, text, "phonetic", boosts.phonetic),
            self.phonetic_query(field_config, text, "phonetic_edgeGram", boosts.phonetic_edge_gram),
        ]

        length = len(text or "")
        if 3 <= length <= 4:
            queries.append(self.match_query(field_config, text, boosts.exact_edit, 1))
        elif 4 < length <= 7:
            queries.append(self.match_query(field_config, text, boosts.exact_edit, 2))
            queries.append(self.match_query(field_config, text, boosts.edge_gram_edit, 1, f"{field_name}.edgeGram"))

        return queries

    def build_field_queries(self, field_config: FieldConfig, english_term: str, vernacular_term: Optional[str],
                            fuzzy_search: bool = True) -> List[Dict[str, Any]]:
        if vernacular_term and field_config.vernacular_only:
            return [self.query(field_config, vernacular_term)]

        if field_config.no_fuzzy or field_config.term_query or not fuzzy_search:
            return [self.query(field_config, english_term)]

        return self.fuzzy_queries(field_config, english_term)

    def build_token_query(self, search_type: SearchTypeConfig, token: str,
                          fuzzy_search: bool = True) -> Tuple[Optional[Dict[str, Any]], List[str]]:
        """Query for one analyzed token, plus the languages detected in it"""
        query_fields = search_type.effective_query_fields
        if not query_fields:
            raise ConfigError(f"No query fields defined for type: {search_type.index_type.type}",
                              {"code": "NO_QUERY_FIELDS_DEFINED", "type": search_type.index_type.type})

        languages = self.language_detector.detect(token) if self.language_detector else []

        english_term = token
        vernacular_term = None
        if is_vernacular(languages) and self.transliterator:
            vernacular_term = token
            english_term = self.transliterator.transliterate(token)

        queries = []
        for field_config in query_fields:
            queries.extend(self.build_field_queries(field_config, english_term, vernacular_term, fuzzy_search))

        if not queries:
            return None, languages
        if len(queries) == 1:
            return queries[0], languages
        return {"dis_max": {"queries": queries}}, languages

    # -- filters -----------------------------------------------------------

    def filter_clause(self, filter_config: FilterConfig, value: Any) -> Dict[str, Any]:
        if filter_config.term_query:
            return self.term_query(filter_config, value, no_constant_score=True)
        return self.match_query(filter_config, value, no_constant_score=True)

    def language_values(self, search_type: SearchTypeConfig, request: Dict[str, Any],
                        term_languages: List[str]) -> List[str]:
        lang_filter = search_type.lang_filter
        values: List[Any] = []

        requested = (request.get("filter") or {}).get(constants.LANG_FILTER)
        if requested:
            if lang_filter.value:
                requested = transforms.get(lang_filter.value)(requested)
            values.extend(requested if isinstance(requested, list) else [requested])

        if request.get("lang"):
            values.append(request["lang"])

        values.extend(term_languages or [])
        return unique(values)

    def filter_part(self, search_type: SearchTypeConfig, request: Dict[str, Any],
                    term_languages: Optional[List[str]] = None, facet_filter: bool = False) -> Optional[Dict[str, Any]]:
        """Engine-side filter; ``facet_filter`` selects the post-aggregation pass"""
        request_filter = request.get("filter") or {}
        clauses = []

        for key, filter_config in search_type.effective_filters.items():
            if key == constants.LANG_FILTER or filter_config.type == constants.POST_FILTER_TYPE:
                continue

            value = request_filter.get(key)
            if value is None:
                value = filter_config.default_value
            if value is None or value == "" or value == []:
                continue

            is_facet = filter_config.type == constants.FACET_FILTER_TYPE
            if isinstance(value, dict) and value.get("type") and "values" in value:
                is_facet = is_facet or value["type"] == constants.FACET_FILTER_TYPE
                value = value["values"]

            if is_facet != facet_filter:
                continue

            if filter_config.value:
                value = transforms.get(filter_config.value)(value)

            clauses.append(self.filter_clause(filter_config, value))

        if not facet_filter:
            languages = self.language_values(search_type, request, term_languages)
            if languages:
                clauses.append(self.filter_clause(search_type.lang_filter,
                                                  languages[0] if len(languages) == 1 else languages))

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"bool": {"filter": clauses}}

    def post_filters(self, search_type: SearchTypeConfig,
                     request: Dict[str, Any]) -> List[Callable[[Dict[str, Any]], bool]]:
        """Predicates applied to fetched documents"""
        request_filter = request.get("filter") or {}
        checks = []

        for key, filter_config in search_type.effective_filters.items():
            if filter_config.type != constants.POST_FILTER_TYPE:
                continue

            value = request_filter.get(key)
            if value is None:
                value = filter_config.default_value
            if value is None:
                continue

            if filter_config.value:
                value = transforms.get(filter_config.value)(value)

            predicate = predicates.get(filter_config.predicate)
            checks.append(partial(predicate, field=filter_config.field, value=value))

        return checks

    # -- sort / paging -----------------------------------------------------

    def build_sort(self, entry: Any) -> Optional[Dict[str, str]]:
        default_order = self.search_config.default_sort_order

        if isinstance(entry, str):
            field_name, order = entry, None
        elif isinstance(entry, SortConfig):
            field_name, order = entry.field, entry.order
        elif isinstance(entry, dict):
            field_name, order = entry.get("field") or constants.SCORE_SORT_FIELD, entry.get("order")
        else:
            return None

        if field_name == constants.SCORE_SORT_FIELD:
            field_name = constants.ENGINE_SCORE_FIELD

        return {field_name: (order or default_order).lower()}

    def sort_part(self, search_type: SearchTypeConfig, request: Dict[str, Any]) -> Optional[List[Dict[str, str]]]:
        requested = request.get("sort")
        if requested:
            entries = requested if isinstance(requested, list) else [requested]
        else:
            entries = [sort_config for sort_config in search_type.effective_sort if sort_config.default]

        sort = [s for s in (self.build_sort(entry) for entry in entries) if s]
        return sort or None

    @staticmethod
    def pagination(request: Dict[str, Any]) -> Tuple[int, Optional[int]]:
        page = request.get("page") or 0
        count = request.get("count") or 0
        return page * count, count or None

    # -- assembly ----------------------------------------------------------

    def compile(self, search_type: SearchTypeConfig, request: Dict[str, Any], tokens: List[str]) -> CompiledQuery:
        fuzzy_search = request.get("fuzzySearch") is not False

        parts = []
        languages: Dict[str, bool] = {}
        for token in tokens:
            part, token_languages = self.build_token_query(search_type, token, fuzzy_search)
            for language in token_languages:
                languages[language] = True
            if part is not None:
                parts.append(part)

        query_languages = list(languages)

        bool_query: Dict[str, Any] = {}
        if len(parts) == 1:
            bool_query["must"] = parts[0]
        elif parts:
            bool_query["should"] = parts
            if search_type.minimum_should_match is not None:
                bool_query["minimum_should_match"] = search_type.minimum_should_match

        filter_query = self.filter_part(search_type, request, query_languages, facet_filter=False)
        if filter_query:
            bool_query["filter"] = filter_query

        start, size = self.pagination(request)
        index_type = search_type.index_type

        search = compact({
            "from": start,
            "size": size,
            "sort": self.sort_part(search_type, request),
            "query": {
                "function_score": {
                    "query": {"bool": bool_query},
                    "field_value_factor": {"field": constants.WEIGHT_FIELD, "factor": WEIGHT_FACTOR, "missing": 1},
                }
            },
            "post_filter": self.filter_part(search_type, request, query_languages, facet_filter=True),
            "aggs": build_facets(search_type),
        })

        return CompiledQuery(index=index_type.index, type=index_type.type, search=search,
                             query_languages=query_languages)

    def compile_view(self, view_type: SearchTypeConfig, request: Dict[str, Any]) -> Dict[str, Any]:
        """Filter-only query body for paging through a whole view"""
        filter_query = self.filter_part(view_type, request)
        return compact({
            "sort": self.sort_part(view_type, request),
            "query": {"bool": compact({"filter": filter_query})},
        })
