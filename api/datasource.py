"""ElasticDatasource: wires settings, transport and collaborators together."""

from __future__ import annotations

import logging

import httpx

from collaborators import QueryBuilder, ResponseReducer, Transport
from config import (
    ES_INDEX,
    ES_MAX_CONCURRENT_SHARD_REQUESTS,
    ES_TIME_FIELD,
    ES_VERSION,
)
from connector_models import DocsResult, FieldDescriptor, SuggestionItem, TimeSeries
from elastic_response import ElasticResponse
from es_transport import ElasticConnection, ElasticTransport
from meta_query import MetaQueryRouter
from models import BatchRequest, DatasourceSettings, MetaQuery, MetricFindRequest, TimeRange
from orchestrator import MultiSearchOrchestrator
from query_builder import ElasticQueryBuilder
from templating import TemplateVariables
from version_policy import parse_engine_version

log = logging.getLogger(__name__)


def default_settings() -> DatasourceSettings:
    return DatasourceSettings(
        index=ES_INDEX,
        version=parse_engine_version(ES_VERSION),
        max_concurrent_shard_requests=ES_MAX_CONCURRENT_SHARD_REQUESTS,
        time_field=ES_TIME_FIELD,
    )


def _time_variables(templating: TemplateVariables, time_range: TimeRange, interval: str) -> TemplateVariables:
    return templating.with_values({
        "timeFrom": time_range.from_,
        "timeTo": time_range.to,
        "__interval": interval,
    })


class ElasticDatasource:

    def __init__(
        self,
        settings: DatasourceSettings,
        transport: Transport,
        query_builder: QueryBuilder | None = None,
        response_reducer: ResponseReducer | None = None,
    ):
        self.settings = settings
        self.transport = transport
        query_builder = query_builder or ElasticQueryBuilder(time_field=settings.time_field)
        self.orchestrator = MultiSearchOrchestrator(
            settings, transport, query_builder, response_reducer or ElasticResponse(),
        )
        self.router = MetaQueryRouter(settings, transport, query_builder)

    def query(self, request: BatchRequest) -> list[TimeSeries | DocsResult]:
        templating = _time_variables(
            TemplateVariables(request.variables), request.range, request.interval,
        )
        return self.orchestrator.execute_batch(request.queries, request.adhoc_filters, templating)

    def metric_find_query(self, request: MetricFindRequest) -> list[FieldDescriptor] | list[SuggestionItem]:
        templating = _time_variables(TemplateVariables(request.variables), request.range, "1m")
        return self.router.metric_find_query(request.query, templating) or []

    def get_fields(self, field_type: str | None = None) -> list[FieldDescriptor]:
        return self.router.get_fields(MetaQuery(find="fields", type=field_type))

    def get_tag_keys(self) -> list[FieldDescriptor]:
        return self.router.get_tag_keys()

    def get_tag_values(self, key: str) -> list[SuggestionItem]:
        templating = _time_variables(TemplateVariables(), TimeRange(), "1m")
        return self.router.get_tag_values(key, templating)

    def test_datasource(self) -> dict:
        """Check that the configured index pattern resolves to a mapping."""
        try:
            self.transport.send("GET", f"{self.settings.index}/_mapping")
        except httpx.HTTPError as exc:
            log.warning("Datasource test failed for index %s: %s", self.settings.index, exc)
            return {"status": "error", "message": f"Index {self.settings.index} unavailable: {exc}"}
        return {"status": "success", "message": "Index OK"}


def create_datasource(conn: ElasticConnection | None = None) -> ElasticDatasource:
    """Build a datasource for the configured (or overridden) connection."""
    return ElasticDatasource(default_settings(), ElasticTransport(conn))
