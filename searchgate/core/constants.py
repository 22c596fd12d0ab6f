SCORE_SORT_FIELD = "score"
ENGINE_SCORE_FIELD = "_score"
WEIGHT_FIELD = "_weight"
WILDCARD_TYPE = "*"

ORGANIC_MODE = "organic"
AUTOCOMPLETE_MODE = "autocomplete"
SEARCH_RESULT_MODE = "search_result"
VALID_MODES = [ORGANIC_MODE, AUTOCOMPLETE_MODE, SEARCH_RESULT_MODE]

ASC_SORT_ORDER = "ASC"
DESC_SORT_ORDER = "DESC"
VALID_SORT_ORDERS = [ASC_SORT_ORDER, DESC_SORT_ORDER]

DEFAULT_FORMAT = "default"
CUSTOM_FORMAT = "custom"
VALID_FORMATS = [DEFAULT_FORMAT, CUSTOM_FORMAT]

SEARCH_API = "search"
AUTOCOMPLETE_API = "autocomplete"
VIEWS_API = "views"

SEARCH_EVENT = "search"
AUTOCOMPLETE_EVENT = "autocomplete"
SUGGESTED_QUERIES_EVENT = "suggestedQueries"
VALID_EVENTS = [SEARCH_EVENT, AUTOCOMPLETE_EVENT, SUGGESTED_QUERIES_EVENT]

POST_FILTER_TYPE = "post"
FACET_FILTER_TYPE = "facet"

FIELD_FACET = "field"
RANGES_FACET = "ranges"
FILTERS_FACET = "filters"

SEARCH_QUERY_TYPE = "searchQuery"
SEARCH_QUERY_STORE = "search_query_store"
LANG_FILTER = "lang"

VIEW_PAGE_SIZE = 100
