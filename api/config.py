"""Service configuration from environment variables."""

import os

ES_URL: str = os.getenv("ES_URL", "http://elasticsearch:9200")
ES_INDEX: str = os.getenv("ES_INDEX", "logstash-*")
ES_VERSION: str = os.getenv("ES_VERSION", "5")
ES_MAX_CONCURRENT_SHARD_REQUESTS: int = int(os.getenv("ES_MAX_CONCURRENT_SHARD_REQUESTS", "256"))
ES_TIME_FIELD: str = os.getenv("ES_TIME_FIELD", "@timestamp")
ES_USERNAME: str | None = os.getenv("ES_USERNAME") or None
ES_PASSWORD: str | None = os.getenv("ES_PASSWORD") or None
ES_TIMEOUT: float = float(os.getenv("ES_TIMEOUT", "30"))
