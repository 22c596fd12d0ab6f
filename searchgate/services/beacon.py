"""
Beacon analytics for search queries and search results.

Each event is wrapped into a beacon record (client id, section, name, epoch time
and properties drawn from the request headers), base64 encoded and posted to a
Kafka REST proxy as ``{"records": [{"value": ...}]}``.
"""

import base64
import hashlib
import json
import random
import time
from typing import Any, Dict, List, Optional

from ..core.errors import ConfigError
from ..core.registry import event_handlers
from .analytics_sink import AnalyticsSinks, HttpSink
from .event_emitter import EventData

SEARCH_QUERY_EVENT = "search_query"
SEARCH_RESULT_EVENT = "search_result"

KAFKA_HEADERS = {"Content-Type": "application/vnd.kafka.binary.v1+json"}

BEACON_TYPES = {
    SEARCH_QUERY_EVENT: {"event_section": "search", "event_name": "search_query", "pv_event": False},
    SEARCH_RESULT_EVENT: {"event_section": "search", "event_name": "search_result", "pv_event": True},
}

DEFAULT_PROPERTIES = {
    "session_source": "app",
    "user_handset_maker": None,
    "user_app_ver": None,
    "user_connection": None,
    "user_os_platform": None,
    "user_handset_model": None,
    "user_os_ver": None,
    "user_os_name": None,
    "event_attribution": None,
}

HEADER_PROPERTIES = [
    "session_source",
    "user_handset_maker",
    "user_app_ver",
    "user_connection",
    "user_os_platform",
    "user_handset_model",
    "user_os_ver",
    "user_os_name",
    "event_attribution",
]


def wrap_event_properties(headers: Optional[Dict[str, Any]], event_type: str,
                          event: Dict[str, Any]) -> Dict[str, Any]:
    headers = headers or {}
    beacon_type = BEACON_TYPES[event_type]

    properties = {}
    for name in HEADER_PROPERTIES:
        properties[name] = headers.get(name) or DEFAULT_PROPERTIES[name]
    properties["event_attribution"] = headers.get("event_attribution") or beacon_type["event_name"]
    properties["pv_event"] = beacon_type["pv_event"]
    properties.update(event)

    return {
        "client_id": headers.get("client_id") or random.randint(0, 1000000000),
        "event_section": beacon_type["event_section"],
        "event_name": beacon_type["event_name"],
        "epoch_time": int(time.time() * 1000),
        "properties": properties,
    }


def search_query_event_properties(query_data: Dict[str, Any], query_languages: List[str]) -> Dict[str, Any]:
    request_filter = query_data.get("filter") or {}
    lang = request_filter.get("lang") or {}
    sort = query_data.get("sort") if isinstance(query_data.get("sort"), dict) else {}
    text = query_data.get("text") or ""
    original_input = query_data.get("originalInput")

    return {
        "user_language_primary": lang.get("primary"),
        "user_language_secondary": lang.get("secondary"),
        "filters": {k: v for k, v in request_filter.items() if k != "lang" and v is not None},
        "sort_field": sort.get("field") or "sort",
        "sort_order": sort.get("order") or "DESC",
        "unicode": "yes" if query_languages else "no",
        "original_search_input": original_input,
        "original_search_input_length": len(original_input) if original_input else None,
        "search_query": text,
        "search_query_language": query_languages or "en",
        "search_query_key": hashlib.md5(text.strip().encode("utf-8")).hexdigest(),
        "search_mode": query_data.get("mode"),
        "search_entity": query_data.get("type"),
        "page_num": query_data.get("page"),
    }


def search_result_event_properties(query_data: Dict[str, Any], query_languages: List[str],
                                   query_result: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    query_result = query_result or {}
    results = query_result.get("results") or []
    if isinstance(results, dict):
        # multi-type envelope
        results = [r for group in results.values() for r in group.get("results") or []]

    properties = search_query_event_properties(query_data, query_languages)
    properties["item_ids"] = [result.get("_id") for result in results]
    properties["total_num_of_items"] = query_result.get("totalResults")
    return properties


def kafka_envelope(record: Dict[str, Any]) -> Dict[str, Any]:
    value = base64.b64encode(json.dumps(record).encode("utf-8")).decode("ascii")
    return {"records": [{"value": value}]}


class Beacon:
    def __init__(self, sink: HttpSink):
        self.sink = sink

    async def send(self, headers: Optional[Dict[str, Any]], event_type: str, event: Dict[str, Any]) -> bool:
        record = wrap_event_properties(headers, event_type, event)
        return await self.sink.send(kafka_envelope(record), headers=KAFKA_HEADERS)

    async def send_search_query(self, data: EventData) -> bool:
        event = search_query_event_properties(data.query_data, data.query_languages)
        return await self.send(data.headers, SEARCH_QUERY_EVENT, event)

    async def send_search_result(self, data: EventData) -> bool:
        event = search_result_event_properties(data.query_data, data.query_languages, data.query_result)
        return await self.send(data.headers, SEARCH_RESULT_EVENT, event)


def _beacon(sinks: AnalyticsSinks) -> Beacon:
    if sinks.beacon is None:
        raise ConfigError("Beacon handler configured without BEACON_URL", {"code": "NO_BEACON_URL"})
    return Beacon(sinks.beacon)


@event_handlers.register("beaconSearchQuery")
def beacon_search_query(sinks: AnalyticsSinks):
    return _beacon(sinks).send_search_query


@event_handlers.register("beaconSearchResult")
def beacon_search_result(sinks: AnalyticsSinks):
    return _beacon(sinks).send_search_result
