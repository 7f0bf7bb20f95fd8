"""
Tests for the Couchbase REST API client.

These tests verify CouchbaseClient.fetch correctly:
- Decodes object, list and mapping shaped bodies into response models
- Reports SUCCESS / PARTIAL / FAILED outcomes
- Still decodes the body of non-2xx responses (401, 403, 500)
- Never raises on transport or decode errors
- Keeps the rest of a body when single fields are null or mistyped
"""

import logging

import httpx
import pytest

from couchbase_emx.cb_client import FetchOutcome
from couchbase_emx.types import (
    AutoFailoverResponse,
    BucketsResponse,
    ClusterStatusResponse,
    IndexStatusResponse,
    PoolsResponse,
    RebalanceProgressResponse,
)


class TestFetchSuccess:
    def test_decodes_object_body(self, client_factory):
        client, _ = client_factory({"/pools": {"json": {"uuid": "abc123"}}})

        result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.SUCCESS
        assert result.ok
        assert result.status_code == 200
        assert result.error is None
        assert result.value.uuid == "abc123"

    def test_decodes_top_level_list(self, client_factory, buckets_payload):
        client, _ = client_factory({"/pools/default/buckets": {"json": buckets_payload}})

        result = client.fetch("/pools/default/buckets", BucketsResponse)

        assert result.ok
        assert [b.name for b in result.value.root] == ["travel-sample", "cache"]
        assert result.value.root[0].vbucket_server_map.num_replicas == 2

    def test_decodes_arbitrary_key_mapping(self, client_factory, rebalance_payload):
        client, _ = client_factory(
            {"/pools/default/rebalanceProgress": {"json": rebalance_payload}}
        )

        result = client.fetch("/pools/default/rebalanceProgress", RebalanceProgressResponse)

        assert result.ok
        assert result.value.root["ns_1@cb-0.local"] == {"progress": 42.5}

    def test_one_request_per_fetch(self, client_factory):
        client, transport = client_factory({"/pools": {"json": {"uuid": "abc"}}})

        client.fetch("/pools", PoolsResponse)

        assert transport.requests == ["/pools"]


class TestFetchNon2xx:
    @pytest.mark.parametrize(
        "status_code,message",
        [
            (401, "Unauthorized access from /settings/autoFailover"),
            (403, "Access forbidden (403) from /settings/autoFailover"),
            (500, "Unexpected status code when calling /settings/autoFailover"),
        ],
    )
    def test_logs_status_specific_message(self, client_factory, caplog, status_code, message):
        client, _ = client_factory(
            {"/settings/autoFailover": {"status_code": status_code, "json": {"message": "nope"}}}
        )

        with caplog.at_level(logging.ERROR, logger="couchbase_emx.cb_client"):
            client.fetch("/settings/autoFailover", AutoFailoverResponse)

        assert message in caplog.text

    def test_forbidden_body_still_decoded_to_defaults(self, client_factory):
        """A 403 error body decodes into the model, leaving every field at default."""
        client, _ = client_factory(
            {
                "/settings/autoFailover": {
                    "status_code": 403,
                    "json": {"message": "Forbidden. User needs one of the following permissions"},
                }
            }
        )

        result = client.fetch("/settings/autoFailover", AutoFailoverResponse)

        assert result.outcome is FetchOutcome.PARTIAL
        assert result.status_code == 403
        assert result.value == AutoFailoverResponse()
        assert result.value.enabled is False
        assert result.value.timeout == 0

    def test_non_2xx_with_usable_body_keeps_values(self, client_factory):
        client, _ = client_factory({"/pools": {"status_code": 500, "json": {"uuid": "abc"}}})

        result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.PARTIAL
        assert result.value.uuid == "abc"

    def test_unknown_path_fails_with_404(self, client_factory):
        client, _ = client_factory({})

        result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.FAILED
        assert result.status_code == 404
        assert result.value == PoolsResponse()


class TestFetchFailures:
    def test_transport_error_returns_default(self, client_factory, caplog):
        client, _ = client_factory(
            {"/pools": {"error": httpx.ConnectError("connection refused")}}
        )

        with caplog.at_level(logging.ERROR, logger="couchbase_emx.cb_client"):
            result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.FAILED
        assert result.status_code is None
        assert "connection refused" in result.error
        assert result.value == PoolsResponse()
        assert "Request to /pools failed" in caplog.text

    def test_invalid_json_returns_default(self, client_factory):
        client, _ = client_factory({"/pools": {"content": b"<html>not json</html>"}})

        result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.FAILED
        assert result.status_code == 200
        assert result.value.uuid == ""

    def test_wrong_shape_returns_default(self, client_factory):
        """An object where a list is expected is a decode failure."""
        client, _ = client_factory({"/pools/default/buckets": {"json": {"errors": "x"}}})

        result = client.fetch("/pools/default/buckets", BucketsResponse)

        assert result.outcome is FetchOutcome.FAILED
        assert result.value.root == []

    def test_null_body_for_list_decodes_empty(self, client_factory):
        client, _ = client_factory({"/pools/default/buckets": {"content": b"null"}})

        result = client.fetch("/pools/default/buckets", BucketsResponse)

        assert result.outcome is FetchOutcome.SUCCESS
        assert result.value.root == []


class TestPerFieldDecoding:
    def test_uninitialized_cluster_uuid(self, client_factory):
        """An uninitialized cluster reports uuid as an empty list."""
        client, _ = client_factory({"/pools": {"json": {"uuid": []}}})

        result = client.fetch("/pools", PoolsResponse)

        assert result.outcome is FetchOutcome.PARTIAL
        assert result.status_code == 200
        assert result.value.uuid == ""
        assert "PoolsResponse.uuid" in result.error

    def test_null_node_services_keeps_cluster_status(self, client_factory):
        client, _ = client_factory(
            {
                "/pools/nodes": {
                    "json": {
                        "balanced": True,
                        "memoryQuota": 2048,
                        "counters": {"rebalance_start": 4},
                        "nodes": [{"hostname": "a:8091", "services": None}],
                    }
                }
            }
        )

        result = client.fetch("/pools/nodes", ClusterStatusResponse)

        assert result.outcome is FetchOutcome.SUCCESS
        assert result.value.balanced is True
        assert result.value.memory_quota == 2048
        assert result.value.counters.rebalance_start == 4
        assert result.value.nodes[0].hostname == "a:8091"
        assert result.value.nodes[0].services == []

    def test_null_vbucket_map_keeps_every_bucket(self, client_factory, buckets_payload):
        memcached = {"name": "memcached", "bucketType": "memcached", "vBucketServerMap": None}
        client, _ = client_factory(
            {"/pools/default/buckets": {"json": [buckets_payload[0], memcached]}}
        )

        result = client.fetch("/pools/default/buckets", BucketsResponse)

        assert result.outcome is FetchOutcome.SUCCESS
        assert [b.name for b in result.value.root] == ["travel-sample", "memcached"]
        assert result.value.root[0].vbucket_server_map.num_replicas == 2
        assert result.value.root[1].vbucket_server_map.num_replicas == 0

    def test_wrong_typed_field_resets_only_that_field(self, client_factory, caplog):
        client, _ = client_factory(
            {
                "/pools/nodes": {
                    "json": {
                        "balanced": True,
                        "memoryQuota": "lots",
                        "counters": {"rebalance_start": 4, "rebalance_fail": "n/a"},
                        "nodes": [{"hostname": "a:8091", "services": "kv"}],
                    }
                }
            }
        )

        with caplog.at_level(logging.ERROR, logger="couchbase_emx.cb_client"):
            result = client.fetch("/pools/nodes", ClusterStatusResponse)

        assert result.outcome is FetchOutcome.PARTIAL
        assert result.value.balanced is True
        assert result.value.memory_quota == 0
        assert result.value.counters.rebalance_start == 4
        assert result.value.counters.rebalance_fail == 0
        assert result.value.nodes[0].hostname == "a:8091"
        assert result.value.nodes[0].services == []
        assert "Ignored 3 undecodable field(s) from /pools/nodes" in caplog.text
        for field in ["ClusterStatusResponse.memoryQuota", "ClusterCounters.rebalance_fail", "NodeDetails.services"]:
            assert field in result.error

    def test_non_object_list_item_decodes_to_defaults(self, client_factory):
        client, _ = client_factory(
            {"/indexStatus": {"json": {"indexes": ["garbage", {"indexName": "idx"}]}}}
        )

        result = client.fetch("/indexStatus", IndexStatusResponse)

        assert result.outcome is FetchOutcome.PARTIAL
        assert [i.index_name for i in result.value.indexes] == ["", "idx"]
