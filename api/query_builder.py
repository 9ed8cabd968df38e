"""Query DSL construction for panel queries and terms lookups.

Bodies reference the time range and auto interval through ``$timeFrom``,
``$timeTo`` and ``$__interval`` placeholders; the caller resolves them on the
serialized payload.
"""

from __future__ import annotations

from collaborators import QueryBuilder
from models import (
    AdhocFilter,
    BucketAgg,
    BucketAggType,
    FilterOperator,
    MetaQuery,
    MetricType,
    PanelQuery,
)

DEFAULT_RAW_DOCUMENT_SIZE = 500
DEFAULT_TERMS_SIZE = 500


def _range_filter(time_field: str) -> dict:
    return {
        "range": {
            time_field: {
                "gte": "$timeFrom",
                "lte": "$timeTo",
                "format": "epoch_millis",
            }
        }
    }


def _query_string_filter(query_string: str) -> dict:
    return {"query_string": {"analyze_wildcard": True, "query": query_string}}


def _base_query(time_field: str, query_string: str) -> dict:
    return {
        "size": 0,
        "query": {
            "bool": {
                "filter": [
                    _range_filter(time_field),
                    _query_string_filter(query_string),
                ]
            }
        },
    }


class ElasticQueryBuilder(QueryBuilder):

    def __init__(self, time_field: str = "@timestamp"):
        self.time_field = time_field

    def build(self, query: PanelQuery, adhoc_filters: list[AdhocFilter], query_string: str) -> dict:
        body = _base_query(query.time_field, query_string)
        if adhoc_filters:
            self._add_adhoc_filters(body, adhoc_filters)

        if query.is_raw_document:
            body["size"] = query.size if query.size is not None else DEFAULT_RAW_DOCUMENT_SIZE
            body["sort"] = {query.time_field: {"order": "desc", "unmapped_type": "boolean"}}
            return body

        nested = body
        for agg in query.bucket_aggs:
            agg_body = {agg.type.value: self._bucket_agg_params(agg, query.time_field)}
            nested.setdefault("aggs", {})[agg.id] = agg_body
            nested = agg_body

        for metric in query.metrics:
            if metric.type == MetricType.count:
                continue
            params = {"field": metric.field}
            if metric.type == MetricType.percentiles and "percents" in metric.settings:
                params["percents"] = metric.settings["percents"]
            nested.setdefault("aggs", {})[metric.id] = {metric.type.value: params}

        return body

    def build_terms_query(self, meta: MetaQuery) -> dict:
        body = _base_query(self.time_field, meta.query or "*")
        body["aggs"] = {
            "1": {
                "terms": {
                    "field": meta.field,
                    "size": meta.size or DEFAULT_TERMS_SIZE,
                    "order": {"_term": "asc"},
                }
            }
        }
        return body

    # ── Internal helpers ──────────────────────────────────────────────

    def _add_adhoc_filters(self, body: dict, adhoc_filters: list[AdhocFilter]) -> None:
        bool_query = body["query"]["bool"]
        must = bool_query.setdefault("must", [])
        must_not = bool_query.setdefault("must_not", [])

        for adhoc in adhoc_filters:
            phrase = {adhoc.key: {"query": adhoc.value}}
            if adhoc.operator == FilterOperator.equals:
                must.append({"match_phrase": phrase})
            elif adhoc.operator == FilterOperator.not_equals:
                must_not.append({"match_phrase": phrase})
            elif adhoc.operator == FilterOperator.less_than:
                must.append({"range": {adhoc.key: {"lt": adhoc.value}}})
            elif adhoc.operator == FilterOperator.greater_than:
                must.append({"range": {adhoc.key: {"gt": adhoc.value}}})
            elif adhoc.operator == FilterOperator.regex_match:
                must.append({"regexp": {adhoc.key: adhoc.value}})
            elif adhoc.operator == FilterOperator.regex_not_match:
                must_not.append({"regexp": {adhoc.key: adhoc.value}})

    def _bucket_agg_params(self, agg: BucketAgg, time_field: str) -> dict:
        settings = agg.settings
        if agg.type == BucketAggType.date_histogram:
            interval = settings.get("interval", "auto")
            if interval == "auto":
                interval = "$__interval"
            return {
                "interval": interval,
                "field": agg.field or time_field,
                "min_doc_count": int(settings.get("min_doc_count", 0)),
                "extended_bounds": {"min": "$timeFrom", "max": "$timeTo"},
                "format": "epoch_millis",
            }

        if agg.type == BucketAggType.terms:
            size = int(settings.get("size", 10))
            order_by = settings.get("order_by", "_term")
            params = {
                "field": agg.field,
                "size": size if size != 0 else DEFAULT_TERMS_SIZE,
                "order": {order_by: settings.get("order", "desc")},
            }
            if "min_doc_count" in settings:
                params["min_doc_count"] = int(settings["min_doc_count"])
            return params

        if agg.type == BucketAggType.histogram:
            return {
                "field": agg.field,
                "interval": settings.get("interval", 1000),
                "min_doc_count": int(settings.get("min_doc_count", 0)),
            }

        # filters: one named bucket per query string
        filters = {}
        for entry in settings.get("filters", [{"query": "*"}]):
            label = entry.get("label") or entry["query"]
            filters[label] = _query_string_filter(entry["query"])
        return {"filters": filters}
