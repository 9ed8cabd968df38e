"""Interfaces for the pieces the orchestrator delegates to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from connector_models import DocsResult, TimeSeries
from models import AdhocFilter, MetaQuery, PanelQuery


@dataclass
class TransportResponse:
    status: int
    data: Any
    raw_config: dict = field(default_factory=dict)


class Transport(ABC):
    """Sends one HTTP request to the engine. No retries."""

    @abstractmethod
    def send(self, method: str, path: str, body: str | dict | None = None) -> TransportResponse: ...


class QueryBuilder(ABC):
    """Pure DSL construction, no network access."""

    @abstractmethod
    def build(self, query: PanelQuery, adhoc_filters: list[AdhocFilter], query_string: str) -> dict: ...

    @abstractmethod
    def build_terms_query(self, meta: MetaQuery) -> dict: ...


class ResponseReducer(ABC):
    """Zips multi-search response slots back onto the queries that produced them."""

    @abstractmethod
    def reduce(self, queries: list[PanelQuery], response: dict) -> list[TimeSeries | DocsResult]: ...
