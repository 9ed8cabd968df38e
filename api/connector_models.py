"""Pydantic models for Elasticsearch wire shapes and reduced results."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


# -- Multi-search wire models ------------------------------------------


class QueryHeader(BaseModel):
    search_type: str
    ignore_unavailable: bool = True
    index: str
    max_concurrent_shard_requests: Optional[int] = None


# -- Introspection results ---------------------------------------------


class FieldDescriptor(BaseModel):
    path: str
    type: str


class SuggestionItem(BaseModel):
    label: str | int | float
    value: str | int | float


# -- Reduced query results ---------------------------------------------


class TimeSeries(BaseModel):
    target: str
    ref_id: str
    datapoints: list[tuple[Optional[float], Any]] = Field(default_factory=list)


class DocsResult(BaseModel):
    ref_id: str
    type: Literal["docs"] = "docs"
    total: int = 0
    datapoints: list[dict[str, Any]] = Field(default_factory=list)


class QueryResponse(BaseModel):
    data: list[TimeSeries | DocsResult]
