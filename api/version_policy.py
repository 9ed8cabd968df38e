"""Engine version tiers and the wire-compatibility switches they drive."""

from __future__ import annotations

import logging
from enum import Enum

log = logging.getLogger(__name__)


class EngineVersion(int, Enum):
    v2 = 2
    v5 = 5
    v5_6 = 56


class SearchType(str, Enum):
    count = "count"
    query_then_fetch = "query_then_fetch"


DEFAULT_VERSION = EngineVersion.v5

_VERSION_ALIASES = {
    "2": EngineVersion.v2,
    "2.x": EngineVersion.v2,
    "5": EngineVersion.v5,
    "5.x": EngineVersion.v5,
    "56": EngineVersion.v5_6,
    "5.6": EngineVersion.v5_6,
    "5.6+": EngineVersion.v5_6,
}

# Every tier must have an entry in each table below.
_SHARD_CONCURRENCY = {
    EngineVersion.v2: False,
    EngineVersion.v5: False,
    EngineVersion.v5_6: True,
}

# Tiers below 5 still accept search_type=count.
_COUNT_SEARCH = {
    EngineVersion.v2: True,
    EngineVersion.v5: False,
    EngineVersion.v5_6: False,
}


def parse_engine_version(raw: int | str | EngineVersion | None) -> EngineVersion:
    """Resolve a configured version value to a tier.

    Unset means the configuration default (5.x). Anything unrecognised falls
    back to the oldest tier rather than failing.
    """
    if isinstance(raw, EngineVersion):
        return raw
    if raw is None or str(raw).strip() == "":
        return DEFAULT_VERSION
    version = _VERSION_ALIASES.get(str(raw).strip().lower())
    if version is None:
        log.warning("Unrecognised engine version %r, assuming 2.x", raw)
        return EngineVersion.v2
    return version


def includes_shard_concurrency(version: EngineVersion) -> bool:
    """Whether the msearch header carries max_concurrent_shard_requests."""
    return _SHARD_CONCURRENCY.get(version, False)


def data_search_type(version: EngineVersion, size: int | None) -> SearchType:
    """Search type for a batched panel query.

    Count-only probes (size 0) use the legacy count search on pre-5 engines.
    """
    if _COUNT_SEARCH.get(version, True) and size == 0:
        return SearchType.count
    return SearchType.query_then_fetch


def terms_search_type(version: EngineVersion) -> SearchType:
    """Search type for a terms (meta) query; size is not considered."""
    if _COUNT_SEARCH.get(version, True):
        return SearchType.count
    return SearchType.query_then_fetch
