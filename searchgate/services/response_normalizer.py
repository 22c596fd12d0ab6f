"""
Folds raw engine responses into result envelopes.

Single type::

    {"type", "name", "results": [...], "facets": {...}, "queryTimeTaken", "totalResults"}

Fan-out across types::

    {"multi": True, "totalResults", "queryTimeTaken", "results": {name: <single envelope>}}
"""

from typing import Any, Dict, List, Optional

from ..config.search_config import FacetConfig, SearchConfig, SearchTypeConfig
from .elasticsearch_service import total_hits

HIT_FIELDS = ["_id", "_score", "_type", "_weight"]

DEFLECTION_RATIO = 0.5


def facet_buckets(aggregation: Dict[str, Any]) -> List[Dict[str, Any]]:
    buckets = aggregation.get("buckets") or []
    if isinstance(buckets, dict):
        # keyed aggregations (filters) return {key: bucket}
        buckets = [dict(bucket, key=key) for key, bucket in buckets.items()]

    facets = []
    for bucket in buckets:
        facet = {"key": bucket.get("key"), "count": bucket.get("doc_count", 0)}
        for end in ("from", "to"):
            if bucket.get(end) is not None:
                facet[end] = bucket[end]
        facets.append(facet)
    return facets


class ResponseNormalizer:
    """Maps hits, totals, timings and aggregations onto the result envelope"""

    def __init__(self, search_config: SearchConfig):
        self.search_config = search_config

    def type_name(self, type_key: str) -> str:
        type_config = self.search_config.types.get(type_key)
        if type_config is None:
            return type_key
        return type_config.display_name

    def facets(self, search_type: Optional[SearchTypeConfig],
               aggregations: Optional[Dict[str, Any]]) -> Optional[Dict[str, List[Dict[str, Any]]]]:
        if not search_type or not search_type.facets or not aggregations:
            return None

        facets = {}
        for facet_config in search_type.facets:
            aggregation = aggregations.get(facet_config.key)
            if not aggregation:
                continue
            facets[facet_config.key] = facet_buckets(self._unwrap(facet_config, aggregation))
        return facets

    @staticmethod
    def _unwrap(facet_config: FacetConfig, aggregation: Dict[str, Any]) -> Dict[str, Any]:
        if facet_config.nested_path and "nested" in aggregation:
            return aggregation["nested"]
        return aggregation

    def process_response(self, response: Dict[str, Any], search_types: Dict[str, SearchTypeConfig],
                         type_key: Optional[str] = None) -> Dict[str, Any]:
        """``type_key`` is the search type the query was compiled for; hits name it when absent"""
        hits = (response.get("hits") or {}).get("hits") or []

        if not type_key and hits:
            type_key = hits[0].get("_type")

        search_type = search_types.get(type_key) if type_key else None
        if search_type is not None:
            doc_type, name = search_type.index_type.type, search_type.index_type.display_name
        else:
            doc_type, name = type_key, self.type_name(type_key) if type_key else None

        results = []
        for hit in hits:
            result = dict(hit.get("_source") or {})
            result["_name"] = name
            result.update({k: hit[k] for k in HIT_FIELDS if k in hit})
            results.append(result)

        envelope = {
            "type": doc_type,
            "name": name,
            "results": results,
            "queryTimeTaken": response.get("took"),
            "totalResults": total_hits(response),
        }

        facets = self.facets(search_type, response.get("aggregations"))
        if facets is not None:
            envelope["facets"] = facets
        return envelope

    def process_single(self, response: Optional[Dict[str, Any]], search_types: Dict[str, SearchTypeConfig],
                       type_key: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not response:
            return None
        return self.process_response(response, search_types, type_key)

    def process_multiple(self, responses: Optional[Dict[str, Any]], search_types: Dict[str, SearchTypeConfig],
                         type_keys: List[str]) -> Optional[Dict[str, Any]]:
        """Merge an _msearch response; sub-responses line up with ``type_keys``"""
        if not responses:
            return None

        merged: Dict[str, Any] = {"multi": True, "totalResults": 0, "queryTimeTaken": 0, "results": {}}

        for type_key, response in zip(type_keys, responses.get("responses") or []):
            if not response or "error" in response:
                continue

            result = self.process_response(response, search_types, type_key)
            if not result["type"] or not result["name"] or not result["results"]:
                continue

            merged["queryTimeTaken"] = max(merged["queryTimeTaken"], result["queryTimeTaken"] or 0)
            merged["results"][result["name"]] = result
            merged["totalResults"] += result["totalResults"]

        return merged


def suggested_queries_merge(response: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Flatten a multi-type autocomplete envelope down to the results above the score deflection point

    Relevancy is the hit score with the weight factored back out. Walking relevancy
    in descending order, the first score below half of its predecessor marks the
    deflection; everything scoring at least that predecessor is kept.
    """
    if not response or not response.get("multi"):
        return response

    flat = []
    for group in response["results"].values():
        for result in group["results"]:
            result["_relevancyScore"] = (result.get("_score") or 0) / max(result.get("_weight") or 1.0, 1.0)
            flat.append(result)

    previous = 0
    deflection = 0
    for score in sorted((r["_relevancyScore"] for r in flat), reverse=True):
        if previous and score < DEFLECTION_RATIO * previous:
            deflection = previous
            break
        previous = score

    results = [r for r in flat if r["_relevancyScore"] >= deflection]
    results.sort(key=lambda r: r.get("_score") or 0, reverse=True)

    return dict(response, results=results)
