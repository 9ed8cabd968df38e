"""Multi-search orchestration: one _msearch round trip per query cycle.

Pipeline for a batch of panel queries:
  1. Drop hidden queries (order preserved)
  2. Per query: substitute variables, build the DSL body, pick the header
  3. Substitute variables once more over the whole serialized payload
  4. POST the payload to _msearch
  5. Hand the response and the surviving queries to the response reducer
"""

from __future__ import annotations

import json
import logging

import httpx

import prometheus_exporter
from collaborators import QueryBuilder, ResponseReducer, Transport, TransportResponse
from connector_models import DocsResult, QueryHeader, TimeSeries
from models import AdhocFilter, DatasourceSettings, PanelQuery
from templating import TemplateVariables
from version_policy import SearchType, data_search_type, includes_shard_concurrency

log = logging.getLogger(__name__)

MSEARCH_PATH = "_msearch"


class EngineQueryError(Exception):
    """Elasticsearch rejected a query and explained why."""

    def __init__(self, error: dict | str):
        self.error = error
        reason = error.get("reason") if isinstance(error, dict) else error
        self.message = f"Elasticsearch error: {reason}"
        super().__init__(self.message)


def build_query_header(settings: DatasourceSettings, search_type: SearchType) -> str:
    """Serialize the msearch header line for one query."""
    header = QueryHeader(search_type=search_type.value, index=settings.index)
    if includes_shard_concurrency(settings.version):
        header.max_concurrent_shard_requests = settings.max_concurrent_shard_requests
    return json.dumps(header.model_dump(exclude_none=True))


def post_msearch(transport: Transport, payload: str, kind: str, path: str = MSEARCH_PATH) -> TransportResponse:
    """POST an msearch payload, translating structured engine errors.

    Failures without an engine error body propagate unchanged.
    """
    prometheus_exporter.msearch_requests.labels(kind=kind).inc()
    try:
        response = transport.send("POST", path, payload)
    except httpx.HTTPStatusError as exc:
        error = _engine_error(exc.response)
        if error is None:
            prometheus_exporter.msearch_errors.labels(kind=kind, reason="transport").inc()
            raise
        prometheus_exporter.msearch_errors.labels(kind=kind, reason="engine").inc()
        wrapped = EngineQueryError(error)
        log.warning("%s (%s %s)", wrapped.message, kind, path)
        raise wrapped from exc
    except httpx.RequestError:
        prometheus_exporter.msearch_errors.labels(kind=kind, reason="transport").inc()
        raise
    log.info("POST %s (%s) -> %d", path, kind, response.status)
    return response


def _engine_error(response: httpx.Response) -> dict | str | None:
    """Return the ``error`` object of an engine reply, if it carries one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return body["error"]
    return None


class MultiSearchOrchestrator:
    """Batches panel queries into one _msearch call.

    Holds only read-only settings and collaborators, so one instance can
    serve concurrent query cycles.
    """

    def __init__(
        self,
        settings: DatasourceSettings,
        transport: Transport,
        query_builder: QueryBuilder,
        response_reducer: ResponseReducer,
    ):
        self.settings = settings
        self.transport = transport
        self.query_builder = query_builder
        self.response_reducer = response_reducer

    def build_payload(
        self,
        queries: list[PanelQuery],
        adhoc_filters: list[AdhocFilter],
        templating: TemplateVariables,
    ) -> str:
        """Return the NDJSON header/body lines for ``queries``, in order."""
        lines = []
        for query in queries:
            query_string = templating.replace(query.query or "*", "lucene")
            body = self.query_builder.build(query, adhoc_filters, query_string)
            search_type = data_search_type(self.settings.version, body.get("size"))
            lines.append(build_query_header(self.settings, search_type))
            lines.append(json.dumps(body))
        return "".join(line + "\n" for line in lines)

    def execute_batch(
        self,
        queries: list[PanelQuery],
        adhoc_filters: list[AdhocFilter],
        templating: TemplateVariables,
    ) -> list[TimeSeries | DocsResult]:
        sent_queries = [query for query in queries if not query.hide]
        if not sent_queries:
            return []

        payload = self.build_payload(sent_queries, adhoc_filters, templating)
        # Second pass: placeholders the query builder emitted into the bodies.
        payload = templating.replace(payload)

        prometheus_exporter.batch_queries.observe(len(sent_queries))
        log.debug("msearch payload: %d queries, %d bytes", len(sent_queries), len(payload))

        response = post_msearch(self.transport, payload, kind="query")
        return self.response_reducer.reduce(sent_queries, response.data)
