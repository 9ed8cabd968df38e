"""Shared fixtures for the datasource test suite."""

import os
from unittest.mock import MagicMock

import pytest

# ---- Environment setup (MUST happen before any api module import) ----
os.environ.setdefault("ES_URL", "http://localhost:9200")
os.environ.setdefault("ES_INDEX", "logs-*")
os.environ.setdefault("ES_VERSION", "5")


# ── Pydantic model factories ─────────────────────────────────────────


@pytest.fixture
def make_panel_query():
    """Factory for PanelQuery instances with sensible defaults."""
    from models import BucketAgg, BucketAggType, MetricAgg, MetricType, PanelQuery

    def _factory(**overrides):
        defaults = dict(
            ref_id="A",
            query="level:error",
            metrics=[MetricAgg(id="1", type=MetricType.count)],
            bucket_aggs=[
                BucketAgg(id="2", type=BucketAggType.date_histogram, settings={"interval": "auto"}),
            ],
        )
        defaults.update(overrides)
        return PanelQuery(**defaults)

    return _factory


@pytest.fixture
def make_settings():
    """Factory for DatasourceSettings."""
    from models import DatasourceSettings
    from version_policy import EngineVersion

    def _factory(**overrides):
        defaults = dict(
            index="logs-*",
            version=EngineVersion.v5,
            max_concurrent_shard_requests=256,
        )
        defaults.update(overrides)
        return DatasourceSettings(**defaults)

    return _factory


@pytest.fixture
def mapping_response():
    """A two-index _mapping response with nested objects and multi-fields."""
    return {
        "logs-2024.01.01": {
            "mappings": {
                "doc": {
                    "properties": {
                        "@timestamp": {"type": "date"},
                        "_id": {"type": "keyword"},
                        "message": {
                            "type": "text",
                            "fields": {"keyword": {"type": "keyword"}},
                        },
                        "system": {
                            "properties": {
                                "cpu": {
                                    "properties": {
                                        "total": {"type": "float"},
                                        "cores": {"type": "integer"},
                                    }
                                },
                            }
                        },
                        "bytes": {"type": "long"},
                    }
                }
            }
        },
        "logs-2024.01.02": {
            "mappings": {
                "doc": {
                    "properties": {
                        "host": {"type": "keyword"},
                        "tags": {"type": "nested", "properties": {"name": {"type": "keyword"}}},
                    }
                }
            }
        },
    }


# ── Transport & collaborator mocks ────────────────────────────────────


@pytest.fixture
def mock_transport():
    """A Transport whose send() returns an empty msearch reply by default."""
    from collaborators import TransportResponse

    mock = MagicMock()
    mock.send.return_value = TransportResponse(status=200, data={"responses": []})
    return mock


@pytest.fixture
def msearch_reply():
    """Wrap response slots into a TransportResponse."""
    from collaborators import TransportResponse

    def _factory(*slots):
        return TransportResponse(status=200, data={"responses": list(slots)})

    return _factory


@pytest.fixture
def http_status_error():
    """Build an httpx.HTTPStatusError carrying the given JSON body (or text)."""
    import httpx

    def _factory(status_code=400, json_body=None, text=None):
        request = httpx.Request("POST", "http://localhost:9200/_msearch")
        if json_body is not None:
            response = httpx.Response(status_code, json=json_body, request=request)
        else:
            response = httpx.Response(status_code, text=text or "", request=request)
        return httpx.HTTPStatusError("upstream error", request=request, response=response)

    return _factory


# ── FastAPI TestClient with a mocked datasource ───────────────────────


@pytest.fixture
def test_client(make_settings, mock_transport):
    """FastAPI TestClient whose datasource talks to ``mock_transport``."""
    from datasource import ElasticDatasource
    from main import app, get_datasource

    datasource = ElasticDatasource(make_settings(), mock_transport)
    app.dependency_overrides[get_datasource] = lambda: datasource

    from fastapi.testclient import TestClient
    client = TestClient(app)
    yield client, mock_transport

    app.dependency_overrides.clear()
