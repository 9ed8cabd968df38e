"""Elasticsearch HTTP transport.

Sends raw requests to the engine's REST API. Supports an optional
per-request connection override (URL + basic auth, forwarded cookies).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from collaborators import Transport, TransportResponse
from config import ES_PASSWORD, ES_TIMEOUT, ES_URL, ES_USERNAME

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
NDJSON_CONTENT_TYPE = "application/x-ndjson"


@dataclass
class ElasticConnection:
    """Elasticsearch URL plus the credentials to attach to each request."""

    url: str
    username: str | None = None
    password: str | None = None
    cookies: dict[str, str] | None = None


def default_connection() -> ElasticConnection:
    return ElasticConnection(url=ES_URL, username=ES_USERNAME, password=ES_PASSWORD)


class ElasticTransport(Transport):
    """httpx-backed transport bound to one connection."""

    def __init__(
        self,
        conn: ElasticConnection | None = None,
        timeout: float = ES_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        conn = conn or default_connection()
        auth = None
        if conn.username and conn.password:
            auth = httpx.BasicAuth(conn.username, conn.password)
        headers = {}
        if conn.cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in conn.cookies.items())
        self.base_url = conn.url.rstrip("/")
        self._client = httpx.Client(
            headers=headers,
            follow_redirects=True,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    def send(self, method: str, path: str, body: str | dict | None = None) -> TransportResponse:
        """Issue one request; raise httpx.HTTPStatusError on a non-2xx reply."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs: dict = {}
        if isinstance(body, str):
            kwargs["content"] = body.encode()
            kwargs["headers"] = {"Content-Type": NDJSON_CONTENT_TYPE}
        elif body is not None:
            kwargs["json"] = body
            kwargs["headers"] = {"Content-Type": JSON_CONTENT_TYPE}

        response = self._client.request(method, url, **kwargs)
        log.debug("%s %s -> %d", method, url, response.status_code)
        response.raise_for_status()
        return TransportResponse(
            status=response.status_code,
            data=response.json(),
            raw_config={"method": method, "url": url},
        )

    def close(self) -> None:
        self._client.close()
