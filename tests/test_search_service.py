"""
End-to-end service tests: request validation, query compilation, dispatch through a
mocked engine client, response shaping and event emission.
"""

import pytest
from structlog.testing import capture_logs

from conftest import engine_response, hit, hits_response
from searchgate.config.search_config import normalize
from searchgate.core.errors import ValidationError
from searchgate.core.registry import post_processors
from searchgate.services.container import ServiceContainer


@post_processors.register("idsOnly")
def ids_only(response):
    return [result["_id"] for result in response["results"]]


def requested(es_client, call=-1):
    """(method, path, body) of an engine request"""
    await_args = es_client.perform_request.await_args_list[call]
    return await_args.args[0], await_args.args[1], await_args.kwargs.get("body")


class TestSearch:
    async def test_fan_out_is_one_multi_search(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"responses": [
            hits_response([hit("1", name="Runner")], total=1, took=5),
            hits_response([hit("b1", name="Acme")], total=1, took=4),
        ]})

        result = await container.search_service.search({}, {"text": "shoes"})

        es_client.perform_request.assert_awaited_once()
        method, path, body = requested(es_client)
        assert (method, path) == ("POST", "/_msearch")
        assert body[0] == {"index": "shop:product_store", "type": "product"}
        assert body[2] == {"index": "shop:brand_store", "type": "brand"}
        assert len(body) == 4

        assert result["multi"] is True
        assert result["totalResults"] == 2
        assert result["results"]["Products"]["results"][0]["name"] == "Runner"
        assert result["results"]["brand"]["results"][0]["_id"] == "b1"

    async def test_search_logged_with_event_name(self, container, es_client):
        es_client.perform_request.return_value = engine_response(hits_response([hit("1")]))

        with capture_logs() as logs:
            await container.search_service.search({}, {"text": "shoes", "type": "product"})

        search_logs = [log for log in logs if log["event"] == "search"]
        assert len(search_logs) == 1
        log = search_logs[0]
        assert (log["log_level"], log["event_name"], log["type"]) == ("info", "search", "product")

    async def test_fan_out_analyzes_input_once(self, raw_config, es_client, disabled_cache, sinks):
        raw_config["inputAnalyzer"] = {"index": "shop:product_store", "name": "query_tokens"}
        container = ServiceContainer(search_config=normalize(raw_config), es_client=es_client,
                                     cache=disabled_cache, sinks=sinks)
        es_client.perform_request.side_effect = [
            engine_response({"tokens": [{"token": "red"}]}),
            engine_response({"responses": [hits_response([hit("1")]), hits_response([])]}),
        ]

        await container.search_service.search({}, {"text": "red"})

        paths = [call.args[1] for call in es_client.perform_request.await_args_list]
        assert paths == ["/shop:product_store/_analyze", "/_msearch"]

    async def test_typed_search(self, container, es_client):
        es_client.perform_request.return_value = engine_response(hits_response([hit("1")], total=30))

        result = await container.search_service.search({}, {"text": "shoes", "type": "product", "page": 2,
                                                            "count": 5})

        method, path, body = requested(es_client)
        assert (method, path) == ("POST", "/shop:product_store/product/_search")
        assert (body["from"], body["size"]) == (10, 5)
        assert "aggs" in body
        assert (result["type"], result["name"], result["totalResults"]) == ("product", "Products", 30)

    async def test_request_filter_reaches_engine(self, container, es_client):
        es_client.perform_request.return_value = engine_response(hits_response([]))

        await container.search_service.search({}, {"text": "shoes", "type": "product",
                                                   "filter": {"brand": "acme", "category": "boots"}})

        body = requested(es_client)[2]
        assert body["query"]["function_score"]["query"]["bool"]["filter"] == {"term": {"brand": "acme"}}
        assert body["post_filter"] == {"term": {"category": "boots"}}

    async def test_unknown_type_rejected(self, container, es_client):
        with pytest.raises(ValidationError) as exc_info:
            await container.search_service.search({}, {"text": "shoes", "type": "shoe"})

        assert exc_info.value.details["code"] == "INVALID_FORMAT"
        es_client.perform_request.assert_not_awaited()

    async def test_empty_input_rejected(self, container):
        with pytest.raises(ValidationError) as exc_info:
            await container.search_service.search({}, {})
        assert exc_info.value.details["code"] == "NO_INPUT"

    async def test_search_recorded_in_query_log(self, container, es_client, sinks):
        es_client.perform_request.return_value = engine_response(hits_response([hit("1")]))

        await container.search_service.search({}, {"text": "Shoes", "type": "product"})
        await container.event_emitter.drain()

        sinks.indexer.send.assert_awaited_once()
        payload = sinks.indexer.send.await_args.args[0]
        assert payload["doc"]["query"] == "shoes"
        assert payload["doc"]["hasResults"] is True
        assert sinks.indexer.send.await_args.kwargs["path"] == "searchQuery"

    async def test_custom_format_runs_post_processor(self, raw_config, es_client, disabled_cache, sinks):
        raw_config["search"]["types"]["product"]["responsePostProcessor"] = "idsOnly"
        container = ServiceContainer(search_config=normalize(raw_config), es_client=es_client,
                                     cache=disabled_cache, sinks=sinks)
        es_client.perform_request.return_value = engine_response(hits_response([hit("1"), hit("2")]))

        custom = await container.search_service.search({}, {"text": "shoes", "type": "product", "format": "custom"})
        default = await container.search_service.search({}, {"text": "shoes", "type": "product"})

        assert custom == ["1", "2"]
        assert default["type"] == "product"


class TestTokens:
    async def test_whitespace_split_without_analyzer(self, container, es_client):
        assert await container.search_service.tokens("red  shoes") == ["red", "shoes"]
        es_client.perform_request.assert_not_awaited()

    async def test_input_analyzer(self, raw_config, es_client, disabled_cache, sinks):
        raw_config["inputAnalyzer"] = {"index": "shop:product_store", "name": "query_tokens"}
        container = ServiceContainer(search_config=normalize(raw_config), es_client=es_client,
                                     cache=disabled_cache, sinks=sinks)
        es_client.perform_request.return_value = engine_response({"tokens": [{"token": "red"}, {"token": "shoe"}]})

        assert await container.search_service.tokens("red shoes") == ["red", "shoe"]
        assert requested(es_client)[:2] == ("GET", "/shop:product_store/_analyze")


class TestExplainAndTermVectors:
    async def test_explain_drops_paging_and_sort(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"matched": True, "explanation": {"value": 2.0}})

        explanation = await container.search_service.explain_search(
            {}, {"text": "shoes", "type": "product", "id": "42", "sort": {"field": "price"}})

        method, path, body = requested(es_client)
        assert path == "/shop:product_store/product/42/_explain"
        assert not {"from", "size", "sort"} & set(body)
        assert explanation == {"value": 2.0}

    async def test_explain_needs_a_type(self, container):
        with pytest.raises(ValidationError) as exc_info:
            await container.search_service.explain_search({}, {"text": "shoes", "id": "42"})
        assert exc_info.value.details["code"] == "SEARCH_CONFIG_NOT_FOUND"

    async def test_explain_autocomplete(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"explanation": {"value": 1.0}})

        await container.autocomplete_service.explain_autocomplete({}, {"text": "sho", "type": "product", "id": "7"})

        assert requested(es_client)[1] == "/shop:product_store/product/7/_explain"

    async def test_term_vectors(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"term_vectors": {"name": {"terms": {}}}})

        vectors = await container.search_service.term_vectors({}, {"type": "brand", "id": "b1"})

        assert requested(es_client)[:2] == ("GET", "/shop:brand_store/brand/b1/_termvectors")
        assert vectors == {"name": {"terms": {}}}


class TestView:
    async def test_post_filters_applied_to_every_page(self, container, es_client):
        es_client.perform_request.return_value = engine_response(hits_response([
            hit("1", name="Runner", inStock=True),
            hit("2", name="Loafer", inStock=False),
        ]))

        result = await container.search_service.view({}, {"type": "product", "filter": {"inStock": True}})

        assert result == {"totalResults": 1, "results": [{"name": "Runner", "inStock": True}]}
        method, path, body = requested(es_client)
        assert path == "/shop:product_store/product/_search"
        assert (body["from"], body["size"]) == (0, 100)
        assert body["sort"] == [{"popularity": "desc"}, {"_score": "desc"}]

    async def test_wildcard_view_rejected(self, container):
        with pytest.raises(ValidationError):
            await container.search_service.view({}, {"type": "*"})


class TestAutocomplete:
    async def test_autocomplete_fans_out_over_autocomplete_types(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"responses": [
            hits_response([hit("1")]), hits_response([hit("q1", query="shoes")]),
        ]})

        result = await container.autocomplete_service.autocomplete({}, {"text": "sho"})

        body = requested(es_client)[2]
        assert body[0] == {"index": "shop:product_store", "type": "product"}
        assert body[2] == {"index": "shop:search_query_store", "type": "searchQuery"}
        assert body[1]["size"] == 5
        assert set(result["results"]) == {"Products", "searchQuery"}

    async def test_suggested_queries_cut_at_relevancy_drop(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"responses": [
            hits_response([hit("1", 10.0), hit("2", 3.0)]),
            hits_response([hit("q1", 9.0, query="shoes")]),
        ]})

        result = await container.autocomplete_service.suggested_queries({}, {"text": "sho"})

        assert [r["_id"] for r in result["results"]] == ["1", "q1"]

    async def test_search_event_not_emitted_for_autocomplete(self, container, es_client, sinks):
        es_client.perform_request.return_value = engine_response({"responses": []})

        await container.autocomplete_service.autocomplete({}, {"text": "sho"})
        await container.event_emitter.drain()

        sinks.indexer.send.assert_not_awaited()

    async def test_did_you_mean_skips_query_log_index(self, container, es_client):
        es_client.perform_request.return_value = engine_response({"suggestions": ["shoes"]})

        response = await container.autocomplete_service.did_you_mean({}, {"text": "shoos"})

        assert requested(es_client)[:2] == ("GET", "/shop:product_store,shop:brand_store/_didYouMean")
        assert response == {"suggestions": ["shoes"]}

    async def test_did_you_mean_typed(self, container, es_client):
        await container.autocomplete_service.did_you_mean({}, {"text": "shoos", "type": "product"})
        assert requested(es_client)[1] == "/shop:product_store/_didYouMean"

    async def test_did_you_mean_without_searchable_indexes(self, es_client, disabled_cache, sinks):
        container = ServiceContainer(search_config=normalize({"instanceName": "Shop"}), es_client=es_client,
                                     cache=disabled_cache, sinks=sinks)

        assert await container.autocomplete_service.did_you_mean({}, {"text": "shoos"}) is None
        es_client.perform_request.assert_not_awaited()


class TestHealth:
    async def test_ok(self, container, es_client):
        health = await container.health_service.get_health_status()

        assert health.status == "OK"
        assert health.indexes_available == ["shop:brand_store", "shop:product_store", "shop:search_query_store"]
        assert health.types_configured == ["brand", "product", "searchQuery"]
        assert health.cache_available is False

    async def test_degraded_without_indexes(self, container, es_client):
        es_client.indices.exists.return_value = False
        assert (await container.health_service.get_health_status()).status == "DEGRADED"
