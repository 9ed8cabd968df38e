"""Tests for meta_query.py: find fields / find terms routing."""

import json
import logging
from unittest.mock import MagicMock

import pytest

from collaborators import TransportResponse
from templating import TemplateVariables
from version_policy import EngineVersion


@pytest.fixture
def router_factory(make_settings, mock_transport):
    from meta_query import MetaQueryRouter
    from query_builder import ElasticQueryBuilder

    def _factory(version=EngineVersion.v5, builder=None):
        return MetaQueryRouter(make_settings(version=version), mock_transport, builder or ElasticQueryBuilder())

    return _factory


def _terms_reply(*keys):
    return TransportResponse(status=200, data={"responses": [
        {"aggregations": {"1": {"buckets": [{"key": k, "doc_count": 1} for k in keys]}}},
    ]})


class TestParseMetaQuery:

    def test_json_string(self):
        from meta_query import parse_meta_query
        meta = parse_meta_query('{"find": "terms", "field": "host"}')
        assert meta.find == "terms"
        assert meta.field == "host"

    def test_dict(self):
        from meta_query import parse_meta_query
        assert parse_meta_query({"find": "fields", "type": "number"}).type == "number"

    @pytest.mark.parametrize("raw", [None, "", {}, "null", "{}"])
    def test_empty_requests(self, raw):
        from meta_query import parse_meta_query
        assert parse_meta_query(raw) is None

    def test_invalid_json_raises(self):
        from meta_query import parse_meta_query
        with pytest.raises(ValueError):
            parse_meta_query("{find: fields")

    def test_non_object_raises(self):
        from meta_query import parse_meta_query
        with pytest.raises(ValueError):
            parse_meta_query("[1, 2]")


class TestFindFields:

    def test_fields_from_mapping(self, router_factory, mock_transport, mapping_response):
        mock_transport.send.return_value = TransportResponse(status=200, data=mapping_response)
        result = router_factory().metric_find_query('{"find": "fields"}', TemplateVariables())
        mock_transport.send.assert_called_once_with("GET", "logs-*/_mapping")
        paths = {field.path for field in result}
        assert "system.cpu.total" in paths
        assert "_id" not in paths

    def test_type_filter_passed_through(self, router_factory, mock_transport, mapping_response):
        mock_transport.send.return_value = TransportResponse(status=200, data=mapping_response)
        result = router_factory().metric_find_query(
            {"find": "fields", "type": "number"}, TemplateVariables(),
        )
        assert {field.path for field in result} == {"system.cpu.total", "system.cpu.cores", "bytes"}

    def test_field_constraint_substituted_without_filtering(self, router_factory, mock_transport, mapping_response):
        mock_transport.send.return_value = TransportResponse(status=200, data=mapping_response)
        router = router_factory()
        router.get_fields = MagicMock(return_value=[])
        router.metric_find_query({"find": "fields", "field": "$f"}, TemplateVariables({"f": "host"}))
        meta = router.get_fields.call_args.args[0]
        assert meta.field == "host"
        assert meta.type is None


class TestFindTerms:

    def test_terms_round_trip(self, router_factory, mock_transport):
        mock_transport.send.return_value = _terms_reply("web-1", "web-2")
        result = router_factory().metric_find_query(
            {"find": "terms", "field": "host"}, TemplateVariables(),
        )
        assert [(item.label, item.value) for item in result] == [("web-1", "web-1"), ("web-2", "web-2")]

    def test_query_substituted_with_lucene_and_default_wildcard(self, router_factory, mock_transport):
        mock_transport.send.return_value = _terms_reply()
        router = router_factory()
        router.metric_find_query({"find": "terms", "field": "host"}, TemplateVariables())
        body = json.loads(mock_transport.send.call_args.args[2].split("\n")[1])
        assert body["query"]["bool"]["filter"][1]["query_string"]["query"] == "*"

        router.metric_find_query(
            {"find": "terms", "field": "host", "query": "env:$env"},
            TemplateVariables({"env": ["a", "b"]}),
        )
        body = json.loads(mock_transport.send.call_args.args[2].split("\n")[1])
        assert body["query"]["bool"]["filter"][1]["query_string"]["query"] == 'env:("a" OR "b")'

    @pytest.mark.parametrize("version, search_type", [
        (EngineVersion.v2, "count"),
        (EngineVersion.v5, "query_then_fetch"),
        (EngineVersion.v5_6, "query_then_fetch"),
    ])
    def test_search_type_on_path_and_header(self, router_factory, mock_transport, version, search_type):
        mock_transport.send.return_value = _terms_reply()
        router_factory(version=version).metric_find_query({"find": "terms", "field": "host"}, TemplateVariables())
        method, path, payload = mock_transport.send.call_args.args
        assert method == "POST"
        assert path == f"_msearch?search_type={search_type}"
        assert payload.endswith("\n")
        assert json.loads(payload.split("\n")[0])["search_type"] == search_type

    def test_time_placeholders_resolved(self, router_factory, mock_transport):
        mock_transport.send.return_value = _terms_reply()
        router_factory().metric_find_query(
            {"find": "terms", "field": "host"},
            TemplateVariables({"timeFrom": "now-1h", "timeTo": "now"}),
        )
        payload = mock_transport.send.call_args.args[2]
        assert "$timeFrom" not in payload
        assert '"gte": "now-1h"' in payload

    def test_no_aggregations_returns_empty(self, router_factory, mock_transport):
        mock_transport.send.return_value = TransportResponse(
            status=200, data={"responses": [{"hits": {"total": 0, "hits": []}}]},
        )
        assert router_factory().metric_find_query({"find": "terms", "field": "host"}, TemplateVariables()) == []

    def test_engine_error_wrapped(self, router_factory, mock_transport, http_status_error):
        from orchestrator import EngineQueryError
        mock_transport.send.side_effect = http_status_error(400, json_body={"error": {"reason": "no such field"}})
        with pytest.raises(EngineQueryError, match="no such field"):
            router_factory().metric_find_query({"find": "terms", "field": "nope"}, TemplateVariables())


class TestUnknownFind:

    def test_unknown_find_is_unresolved(self, router_factory, mock_transport):
        assert router_factory().metric_find_query({"find": "indices"}, TemplateVariables()) is None
        mock_transport.send.assert_not_called()

    @pytest.mark.parametrize("find", [5, ["terms"], {"x": 1}])
    def test_non_string_find_is_unresolved(self, router_factory, mock_transport, find):
        assert router_factory().metric_find_query({"find": find}, TemplateVariables()) is None
        mock_transport.send.assert_not_called()

    def test_empty_request_is_empty_list(self, router_factory, mock_transport):
        assert router_factory().metric_find_query(None, TemplateVariables()) == []
        mock_transport.send.assert_not_called()


class TestTagKeysAndValues:

    def test_tag_keys_lists_all_fields(self, router_factory, mock_transport, mapping_response):
        mock_transport.send.return_value = TransportResponse(status=200, data=mapping_response)
        keys = {field.path for field in router_factory().get_tag_keys()}
        assert {"host", "message.keyword", "@timestamp"} <= keys

    def test_tag_values_queries_field_with_wildcard(self, router_factory, mock_transport):
        mock_transport.send.return_value = _terms_reply("prod")
        values = router_factory().get_tag_values("env", TemplateVariables())
        assert [item.value for item in values] == ["prod"]
        body = json.loads(mock_transport.send.call_args.args[2].split("\n")[1])
        assert body["aggs"]["1"]["terms"]["field"] == "env"
        assert body["query"]["bool"]["filter"][1]["query_string"]["query"] == "*"


class TestRoundTripLogging:

    def test_mapping_fetch_logged_at_info(self, router_factory, mock_transport, mapping_response, caplog):
        mock_transport.send.return_value = TransportResponse(status=200, data=mapping_response)
        with caplog.at_level(logging.INFO, logger="meta_query"):
            router_factory().get_tag_keys()
        assert any(
            r.levelno == logging.INFO and r.getMessage().startswith("GET logs-*/_mapping")
            for r in caplog.records
        )
