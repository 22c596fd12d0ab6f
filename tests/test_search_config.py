"""
Tests for search config normalization.
"""

import pytest

from searchgate.config.search_config import normalize, normalize_sort, snake_case
from searchgate.core.errors import ConfigError


class TestDerivedIdentifiers:
    """Index and type names filled in at startup."""

    def test_type_defaults_to_key(self, search_config):
        assert search_config.types["product"].type == "product"

    def test_index_derived_from_instance_and_key(self, search_config):
        assert search_config.types["product"].index == "shop:product_store"
        assert search_config.types["brand"].index == "shop:brand_store"

    def test_index_override_from_indices(self, raw_config):
        raw_config["indices"] = {"brand": {"store": "brands_v2"}}
        config = normalize(raw_config)
        assert config.types["brand"].index == "brands_v2"

    def test_snake_case_index_for_camel_case_key(self, raw_config):
        raw_config["types"]["giftCard"] = {"queryFields": [{"field": "name"}]}
        config = normalize(raw_config)
        assert config.types["giftCard"].index == "shop:gift_card_store"

    def test_display_name(self, search_config):
        assert search_config.types["product"].display_name == "Products"
        assert search_config.types["brand"].display_name == "brand"

    def test_instance_name_argument_used_when_config_has_none(self, raw_config):
        del raw_config["instanceName"]
        config = normalize(raw_config, instance_name="Books")
        assert config.instance_name == "Books"
        assert config.types["product"].index == "books:product_store"


class TestDefaults:
    """Built-in types, API sections and boosts merged under the config."""

    def test_every_type_has_lang_filter(self, search_config):
        for type_config in search_config.types.values():
            assert "lang" in type_config.filters
            assert type_config.filters["lang"].field == "_lang"
            assert type_config.filters["lang"].value == "lang"

    def test_score_appended_to_sort(self, search_config):
        sort = search_config.types["product"].sort
        assert [s.field for s in sort] == ["price", "popularity", "score"]
        assert [s.default for s in sort] == [False, True, True]

    def test_search_query_type_added(self, search_config):
        query_type = search_config.types["searchQuery"]
        assert query_type.index == "shop:search_query_store"
        assert query_type.filters["hasResults"].default_value is True

    def test_autocomplete_keeps_builtin_query_type(self, search_config):
        assert set(search_config.autocomplete.types) == {"product", "searchQuery"}
        fields = search_config.autocomplete.types["searchQuery"].effective_query_fields
        assert [(f.field, f.weight, f.vernacular_only) for f in fields] == [
            ("unicodeQuery", 10, True),
            ("query", 9.5, False),
        ]

    def test_default_match_type_boosts(self, search_config):
        boosts = search_config.match_type_boosts
        assert (boosts.exact, boosts.edge_gram, boosts.phonetic, boosts.phonetic_edge_gram) == (1.0, 0.9, 0.7, 0.6)
        assert (boosts.exact_edit, boosts.edge_gram_edit) == (0.8, 0.5)

    def test_match_type_boost_override(self, raw_config):
        raw_config["matchTypeBoosts"] = {"exact": 2.0, "edgeGram_edit": 0.1}
        boosts = normalize(raw_config).match_type_boosts
        assert boosts.exact == 2.0
        assert boosts.edge_gram_edit == 0.1
        assert boosts.edge_gram == 0.9

    def test_default_event_handlers(self, search_config):
        assert search_config.event_handlers == {"search": ["searchQueryRecorder"]}

    def test_default_sort_order(self, search_config):
        assert search_config.default_sort_order == "DESC"

    def test_config_is_frozen(self, search_config):
        with pytest.raises(Exception):
            search_config.types["product"].index = "other"


class TestValidation:
    """Misconfiguration fails at normalization."""

    def test_unknown_index_type(self, raw_config):
        raw_config["search"]["types"]["ghost"] = {"indexType": "ghost"}
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "TYPE_CONFIG_NOT_FOUND"
        assert exc_info.value.details["indexType"] == "ghost"

    def test_unknown_default_type(self, raw_config):
        raw_config["search"]["defaultType"] = "ghost"
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "DEFAULT_TYPE_NOT_FOUND"

    def test_input_analyzer_requires_index_and_name(self, raw_config):
        raw_config["inputAnalyzer"] = {"index": "shop:product_store"}
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "INVALID_INPUT_ANALYZER"

    def test_input_analyzer_accepted(self, raw_config):
        raw_config["inputAnalyzer"] = {"index": "shop:product_store", "name": "standard"}
        assert normalize(raw_config).input_analyzer.name == "standard"

    def test_unknown_event_name(self, raw_config):
        raw_config["eventHandlers"] = {"purchase": ["beaconSearchQuery"]}
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "UNKNOWN_EVENT"

    def test_unknown_transform(self, raw_config):
        raw_config["types"]["product"]["filters"]["brand"]["value"] = "noSuchTransform"
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "UNKNOWN_FUNCTION"

    def test_post_filter_needs_predicate(self, raw_config):
        del raw_config["types"]["product"]["filters"]["inStock"]["predicate"]
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "NO_POST_FILTER_PREDICATE"

    def test_facet_without_ranges_fails_at_startup(self, raw_config):
        raw_config["search"]["types"]["product"]["facets"] = [{"key": "price", "type": "ranges", "field": "price"}]
        with pytest.raises(ConfigError) as exc_info:
            normalize(raw_config)
        assert exc_info.value.details["code"] == "NO_RANGES_DEFINED"
        assert exc_info.value.details["facetName"] == "price"


class TestHelpers:
    def test_snake_case(self):
        assert snake_case("searchQuery") == "search_query"
        assert snake_case("product") == "product"
        assert snake_case("Gift Card") == "gift_card"

    def test_normalize_sort_forms(self):
        assert normalize_sort("count") == [{"field": "count"}]
        assert normalize_sort({"count": True}) == [{"field": "count", "default": True}]
        assert normalize_sort([{"price": {"default": True, "order": "ASC"}}]) == [
            {"field": "price", "order": "ASC", "default": True}
        ]
        assert normalize_sort(None) == []
