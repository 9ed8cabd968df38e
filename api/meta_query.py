"""Metric-find routing: field listings and term suggestions.

A metric-find request is a small JSON document such as
``{"find": "fields", "type": "number"}`` or
``{"find": "terms", "field": "host", "query": "env:$env"}``.
"""

from __future__ import annotations

import json
import logging

import prometheus_exporter
from collaborators import QueryBuilder, Transport
from connector_models import FieldDescriptor, SuggestionItem
from mapping_flattener import flatten_mapping
from models import DatasourceSettings, MetaQuery
from orchestrator import MSEARCH_PATH, build_query_header, post_msearch
from templating import TemplateVariables
from terms_extractor import extract_suggestions
from version_policy import terms_search_type

log = logging.getLogger(__name__)


def parse_meta_query(raw: str | dict | None) -> MetaQuery | None:
    """Parse a metric-find request; None when the request is empty.

    Raises ValueError on malformed JSON.
    """
    if not raw:
        return None
    if isinstance(raw, str):
        raw = json.loads(raw)
        if not raw:
            return None
    if not isinstance(raw, dict):
        raise ValueError("Metric find query must be a JSON object")
    return MetaQuery.model_validate(raw)


class MetaQueryRouter:

    def __init__(self, settings: DatasourceSettings, transport: Transport, query_builder: QueryBuilder):
        self.settings = settings
        self.transport = transport
        self.query_builder = query_builder

    def metric_find_query(
        self,
        raw: str | dict | None,
        templating: TemplateVariables,
    ) -> list[FieldDescriptor] | list[SuggestionItem] | None:
        """Dispatch on ``find``.

        Returns None for an unknown ``find`` value; callers treat that as an
        empty result.
        """
        meta = parse_meta_query(raw)
        if meta is None:
            return []

        find_label = meta.find if meta.find in ("fields", "terms") else "other"
        prometheus_exporter.meta_queries.labels(find=find_label).inc()

        if meta.find == "fields":
            meta = meta.model_copy(update={"field": templating.replace(meta.field, "lucene")})
            return self.get_fields(meta)

        if meta.find == "terms":
            meta = meta.model_copy(update={"query": templating.replace(meta.query or "*", "lucene")})
            return self.get_terms(meta, templating)

        log.debug("Ignoring metric find query with find=%r", meta.find)
        return None

    def get_fields(self, meta: MetaQuery) -> list[FieldDescriptor]:
        """List mapped fields, optionally restricted to ``meta.type``."""
        response = self.transport.send("GET", f"{self.settings.index}/_mapping")
        fields = flatten_mapping(response.data, meta.type)
        log.info("GET %s/_mapping -> %d fields", self.settings.index, len(fields))
        return list(fields.values())

    def get_terms(self, meta: MetaQuery, templating: TemplateVariables) -> list[SuggestionItem]:
        """Return the distinct values of ``meta.field`` matching ``meta.query``."""
        search_type = terms_search_type(self.settings.version)
        header = build_query_header(self.settings, search_type)
        body = json.dumps(self.query_builder.build_terms_query(meta))
        payload = templating.replace(header + "\n" + body + "\n")

        response = post_msearch(
            self.transport,
            payload,
            kind="terms",
            path=f"{MSEARCH_PATH}?search_type={search_type.value}",
        )
        return extract_suggestions(response.data["responses"][0])

    def get_tag_keys(self) -> list[FieldDescriptor]:
        return self.get_fields(MetaQuery(find="fields"))

    def get_tag_values(self, key: str, templating: TemplateVariables) -> list[SuggestionItem]:
        return self.get_terms(MetaQuery(find="terms", field=key, query="*"), templating)
