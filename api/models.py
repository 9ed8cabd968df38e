"""Panel query domain models: Pydantic."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from version_policy import DEFAULT_VERSION, EngineVersion


# ── Enums ──────────────────────────────────────────────────────────────

class MetricType(str, Enum):
    count = "count"
    avg = "avg"
    sum = "sum"
    min = "min"
    max = "max"
    cardinality = "cardinality"
    percentiles = "percentiles"
    raw_document = "raw_document"


class BucketAggType(str, Enum):
    date_histogram = "date_histogram"
    terms = "terms"
    histogram = "histogram"
    filters = "filters"


class FilterOperator(str, Enum):
    equals = "="
    not_equals = "!="
    less_than = "<"
    greater_than = ">"
    regex_match = "=~"
    regex_not_match = "!~"


# ── Panel query definition ────────────────────────────────────────────

class MetricAgg(BaseModel):
    id: str = "1"
    type: MetricType = MetricType.count
    field: Optional[str] = None
    hide: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)


class BucketAgg(BaseModel):
    id: str = "2"
    type: BucketAggType = BucketAggType.date_histogram
    field: Optional[str] = None
    settings: dict[str, Any] = Field(default_factory=dict)


def _default_bucket_aggs() -> list[BucketAgg]:
    return [BucketAgg(id="2", type=BucketAggType.date_histogram, settings={"interval": "auto"})]


class PanelQuery(BaseModel):
    ref_id: str = "A"
    query: Optional[str] = Field(
        default=None,
        description="Lucene filter expression, may reference template variables",
        examples=["level:error AND service:$service"],
    )
    hide: bool = False
    size: Optional[int] = Field(
        default=None,
        ge=0,
        description="Maximum number of documents for raw document queries",
    )
    alias: Optional[str] = None
    time_field: str = "@timestamp"
    metrics: list[MetricAgg] = Field(default_factory=lambda: [MetricAgg()])
    bucket_aggs: list[BucketAgg] = Field(default_factory=_default_bucket_aggs)

    @property
    def is_raw_document(self) -> bool:
        return bool(self.metrics) and self.metrics[0].type == MetricType.raw_document


class AdhocFilter(BaseModel):
    key: str
    operator: FilterOperator = FilterOperator.equals
    value: str


class TimeRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(default="now-6h", alias="from", examples=["1700000000000", "now-6h"])
    to: str = Field(default="now", examples=["1700003600000", "now"])


class BatchRequest(BaseModel):
    queries: list[PanelQuery] = Field(default_factory=list)
    adhoc_filters: list[AdhocFilter] = Field(default_factory=list)
    variables: dict[str, str | list[str]] = Field(default_factory=dict)
    range: TimeRange = Field(default_factory=TimeRange)
    interval: str = Field(default="1m", examples=["10s", "1m", "1h"])


class MetaQuery(BaseModel):
    """A metric-find request: ``{"find": "fields" | "terms", ...}``."""

    find: Optional[Any] = None
    field: Optional[str] = None
    type: Optional[str] = None
    query: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)


class MetricFindRequest(BaseModel):
    query: Optional[str | dict[str, Any]] = None
    variables: dict[str, str | list[str]] = Field(default_factory=dict)
    range: TimeRange = Field(default_factory=TimeRange)


# ── Datasource settings ───────────────────────────────────────────────

class DatasourceSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: str
    version: EngineVersion = DEFAULT_VERSION
    max_concurrent_shard_requests: int = Field(default=256, ge=1)
    time_field: str = "@timestamp"
