import hashlib
import time
from typing import Any, Dict, List

from ..core.logging import get_logger
from ..core.registry import event_handlers, unique
from .analytics_sink import AnalyticsSinks, HttpSink
from .event_emitter import EventData

logger = get_logger(__name__)

SEARCH_QUERY_PATH = "searchQuery"
DEFAULT_LANGUAGE = "en"


def normalize_query(text: str) -> str:
    return " ".join((text or "").lower().split())


def query_key(language: str, query: str) -> str:
    return hashlib.md5(f"{language}/{query}".encode("utf-8")).hexdigest()


def query_log_languages(data: EventData) -> List[str]:
    """Detected languages plus the user's primary and secondary ones, English when none"""
    lang = (data.query_data.get("filter") or {}).get("lang") or {}
    languages = unique(list(data.query_languages or []) + [lang.get("primary")] + list(lang.get("secondary") or []))
    return languages or [DEFAULT_LANGUAGE]


class SearchQueryRecorder:
    """Feeds every search query back to the query-log indexer, once per language"""

    def __init__(self, sink: HttpSink):
        self.sink = sink

    def documents(self, data: EventData) -> List[Dict[str, Any]]:
        query = normalize_query(data.query_data.get("text"))
        query_result = data.query_result or {}
        query_time = int(time.time() * 1000)

        return [
            {
                "key": query_key(language, query),
                "query": query,
                "unicodeQuery": query if data.query_languages else None,
                "queryTime": query_time,
                "hasResults": bool(query_result.get("totalResults")),
                "lang": language,
            }
            for language in query_log_languages(data)
        ]

    async def __call__(self, data: EventData):
        for doc in self.documents(data):
            await self.sink.send({"doc": doc, "signal": {"name": "hit"}}, path=SEARCH_QUERY_PATH)


@event_handlers.register("searchQueryRecorder")
def search_query_recorder(sinks: AnalyticsSinks) -> SearchQueryRecorder:
    return SearchQueryRecorder(sinks.indexer)
