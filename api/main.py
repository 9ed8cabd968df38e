"""Elasticsearch datasource API: batched panel queries and metric-find lookups."""

import logging
from typing import Iterator

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from httpx import HTTPStatusError
from prometheus_client import CONTENT_TYPE_LATEST

import prometheus_exporter
from config import ES_INDEX, ES_URL, ES_VERSION
from connector_models import FieldDescriptor, QueryResponse, SuggestionItem
from datasource import ElasticDatasource, create_datasource
from es_transport import ElasticConnection
from models import BatchRequest, MetricFindRequest
from orchestrator import EngineQueryError

log = logging.getLogger(__name__)

app = FastAPI(title="Elasticsearch Datasource API", version="0.3.0")


@app.exception_handler(EngineQueryError)
async def engine_query_error_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "error": exc.error},
    )


@app.exception_handler(HTTPStatusError)
async def httpx_error_handler(request, exc):
    url = str(exc.request.url)
    status = exc.response.status_code
    if status == 404:
        return JSONResponse(
            status_code=404,
            content={"detail": f"Upstream resource not found: {url}"},
        )
    return JSONResponse(
        status_code=502,
        content={"detail": f"Upstream error {status}: {url}"},
    )


@app.exception_handler(httpx.RequestError)
async def httpx_request_error_handler(request, exc):
    return JSONResponse(
        status_code=502,
        content={"detail": f"Cannot reach Elasticsearch: {exc}"},
    )


# ── Elasticsearch connection dependency ───────────────────────────────


def get_es_conn(
    request: Request,
    x_es_url: str | None = Header(default=None),
    x_es_user: str | None = Header(default=None),
    x_es_pass: str | None = Header(default=None),
    x_es_forward_cookies: bool = Header(default=False),
) -> ElasticConnection | None:
    """Extract optional Elasticsearch connection override from request headers."""
    if not x_es_url:
        return None
    cookies = dict(request.cookies) if x_es_forward_cookies else None
    return ElasticConnection(
        url=x_es_url.rstrip("/"),
        username=x_es_user,
        password=x_es_pass,
        cookies=cookies,
    )


default_datasource = create_datasource()


def get_datasource(
    conn: ElasticConnection | None = Depends(get_es_conn),
) -> Iterator[ElasticDatasource]:
    """Shared datasource for the configured cluster, or a per-request one."""
    if conn is None:
        yield default_datasource
        return

    datasource = create_datasource(conn)
    try:
        yield datasource
    finally:
        datasource.transport.close()


# ── Query endpoints ───────────────────────────────────────────────────


@app.post("/api/query", response_model=QueryResponse)
def api_query(body: BatchRequest, datasource: ElasticDatasource = Depends(get_datasource)):
    return QueryResponse(data=datasource.query(body))


@app.post("/api/metric-find", response_model=list[FieldDescriptor] | list[SuggestionItem])
def api_metric_find(body: MetricFindRequest, datasource: ElasticDatasource = Depends(get_datasource)):
    try:
        return datasource.metric_find_query(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid metric find query: {e}")


@app.get("/api/fields", response_model=list[FieldDescriptor])
def api_fields(
    type: str | None = Query(default=None),
    datasource: ElasticDatasource = Depends(get_datasource),
):
    return datasource.get_fields(type)


@app.get("/api/tag-keys", response_model=list[FieldDescriptor])
def api_tag_keys(datasource: ElasticDatasource = Depends(get_datasource)):
    return datasource.get_tag_keys()


@app.get("/api/tag-values", response_model=list[SuggestionItem])
def api_tag_values(key: str = Query(..., min_length=1), datasource: ElasticDatasource = Depends(get_datasource)):
    return datasource.get_tag_values(key)


@app.get("/api/test")
def api_test_datasource(datasource: ElasticDatasource = Depends(get_datasource)):
    """Quick connectivity check against the configured (or overridden) cluster."""
    return datasource.test_datasource()


# ── Service endpoints ────────────────────────────────────────────────


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/health")
def api_health():
    """Return service status plus multi-search round-trip counters."""
    return {
        "status": "ok",
        "query_requests": prometheus_exporter.sample_value(
            "esds_msearch_requests_total", {"kind": "query"},
        ),
        "terms_requests": prometheus_exporter.sample_value(
            "esds_msearch_requests_total", {"kind": "terms"},
        ),
    }


@app.get("/api/config")
def api_config():
    """Return server-side config (default URL, index, version) so the UI can display them."""
    return {"es_url": ES_URL, "index": ES_INDEX, "es_version": ES_VERSION}


@app.get("/metrics")
def metrics():
    return Response(content=prometheus_exporter.generate(), media_type=CONTENT_TYPE_LATEST)
