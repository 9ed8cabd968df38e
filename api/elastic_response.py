"""Reduce a multi-search response into time series and document lists."""

from __future__ import annotations

import re

from collaborators import ResponseReducer
from connector_models import DocsResult, TimeSeries
from models import MetricAgg, MetricType, PanelQuery
from orchestrator import EngineQueryError

METRIC_LABELS = {
    MetricType.count: "Count",
    MetricType.avg: "Average",
    MetricType.sum: "Sum",
    MetricType.min: "Min",
    MetricType.max: "Max",
    MetricType.cardinality: "Unique Count",
    MetricType.percentiles: "Percentiles",
    MetricType.raw_document: "Raw Document",
}

_ALIAS_RE = re.compile(r"\{\{\s*([\w.]+)\s*([\w.@-]*)\s*\}\}")


class ElasticResponse(ResponseReducer):

    def reduce(self, queries: list[PanelQuery], response: dict) -> list[TimeSeries | DocsResult]:
        responses = response["responses"]
        results: list[TimeSeries | DocsResult] = []

        # Slot i belongs to query i; a count mismatch is the caller's bug.
        for i, query in enumerate(queries):
            slot = responses[i]
            if slot.get("error"):
                raise EngineQueryError(slot["error"])

            if query.is_raw_document:
                results.append(_docs_result(query, slot))
                continue

            self._process_buckets(slot.get("aggregations", {}), query, results, {}, 0)

        return results

    def _process_buckets(
        self,
        aggregations: dict,
        query: PanelQuery,
        results: list,
        props: dict[str, str],
        depth: int,
    ) -> None:
        if depth >= len(query.bucket_aggs):
            return
        agg_def = query.bucket_aggs[depth]
        es_agg = aggregations.get(agg_def.id)
        if es_agg is None:
            return
        buckets = _bucket_list(es_agg)

        if depth == len(query.bucket_aggs) - 1:
            self._process_metrics(buckets, query, results, props)
            return

        for bucket in buckets:
            bucket_props = dict(props)
            label_field = agg_def.field or agg_def.type.value
            bucket_props[label_field] = str(bucket.get("key_as_string") or bucket["key"])
            self._process_buckets(bucket, query, results, bucket_props, depth + 1)

    def _process_metrics(
        self,
        buckets: list[dict],
        query: PanelQuery,
        results: list,
        props: dict[str, str],
    ) -> None:
        visible = [metric for metric in query.metrics if not metric.hide]
        for metric in visible:
            if metric.type == MetricType.count:
                datapoints = [(b["doc_count"], b["key"]) for b in buckets]
                results.append(TimeSeries(
                    target=_series_name(query, metric, props, len(visible)),
                    ref_id=query.ref_id,
                    datapoints=datapoints,
                ))

            elif metric.type == MetricType.percentiles:
                percents = buckets[0].get(metric.id, {}).get("values", {}) if buckets else {}
                for percent in percents:
                    datapoints = [
                        (b.get(metric.id, {}).get("values", {}).get(percent), b["key"])
                        for b in buckets
                    ]
                    results.append(TimeSeries(
                        target=_series_name(query, metric, props, len(visible), extra=f"p{percent}"),
                        ref_id=query.ref_id,
                        datapoints=datapoints,
                    ))

            else:
                datapoints = [(b.get(metric.id, {}).get("value"), b["key"]) for b in buckets]
                results.append(TimeSeries(
                    target=_series_name(query, metric, props, len(visible)),
                    ref_id=query.ref_id,
                    datapoints=datapoints,
                ))


# ── Helpers ──────────────────────────────────────────────────────────


def _bucket_list(es_agg: dict) -> list[dict]:
    """Normalize keyed buckets (filters agg) to a list with ``key`` set."""
    buckets = es_agg.get("buckets", [])
    if isinstance(buckets, dict):
        return [{**bucket, "key": key} for key, bucket in buckets.items()]
    return buckets


def _docs_result(query: PanelQuery, slot: dict) -> DocsResult:
    hits = slot.get("hits", {})
    total = hits.get("total", 0)
    if isinstance(total, dict):
        total = total.get("value", 0)
    docs = []
    for hit in hits.get("hits", []):
        doc = dict(hit.get("_source", {}))
        doc["_id"] = hit.get("_id")
        doc["_type"] = hit.get("_type")
        doc["_index"] = hit.get("_index")
        docs.append(doc)
    return DocsResult(ref_id=query.ref_id, total=total, datapoints=docs)


def _metric_name(metric: MetricAgg) -> str:
    name = METRIC_LABELS[metric.type]
    if metric.field and metric.type != MetricType.count:
        name += f" {metric.field}"
    return name


def _series_name(
    query: PanelQuery,
    metric: MetricAgg,
    props: dict[str, str],
    metric_count: int,
    extra: str | None = None,
) -> str:
    metric_name = _metric_name(metric)
    if extra:
        metric_name = f"{extra} {metric.field}" if metric.field else extra

    if query.alias:
        def _substitute(match: re.Match) -> str:
            group, arg = match.group(1), match.group(2)
            if group == "term" and arg:
                return props.get(arg, match.group(0))
            if group == "metric":
                return metric_name
            if group == "field":
                return metric.field or ""
            return props.get(group, match.group(0))

        return _ALIAS_RE.sub(_substitute, query.alias)

    if not props:
        return metric_name

    name = " ".join(props.values())
    if metric_count > 1 or metric.type != MetricType.count:
        name += f" {metric_name}"
    return name
