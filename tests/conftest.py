"""Shared fixtures: sample Couchbase REST payloads and a fake cluster."""

import httpx
import pytest
from httpx import Request, Response

from couchbase_emx.aggregator import SnapshotAggregator
from couchbase_emx.cb_client import CouchbaseClient


class MockTransport(httpx.BaseTransport):
    """Mock transport serving canned responses by URL path."""

    def __init__(self, responses: dict[str, dict]):
        """
        Initialize with mapping of paths to response data.

        Args:
            responses: Dict mapping URL paths to response data. Each value may
                have 'status_code', and either 'json' or raw 'content'. A value
                with 'error' raises that exception instead of responding.
        """
        self._responses = responses
        self.requests: list[str] = []

    def handle_request(self, request: Request) -> Response:
        """Handle a request by returning the mocked response."""
        path = request.url.path
        self.requests.append(path)
        if path not in self._responses:
            return Response(status_code=404, content=b"Not found", request=request)

        resp_data = self._responses[path]
        if "error" in resp_data:
            raise resp_data["error"]
        if "content" in resp_data:
            return Response(
                status_code=resp_data.get("status_code", 200),
                content=resp_data["content"],
                request=request,
            )
        return Response(
            status_code=resp_data.get("status_code", 200),
            json=resp_data.get("json", {}),
            request=request,
        )


@pytest.fixture
def buckets_payload():
    """Sample response for /pools/default/buckets."""
    return [
        {
            "name": "travel-sample",
            "bucketType": "membase",
            "evictionPolicy": "fullEviction",
            "conflictResolutionType": "seqno",
            "storageBackend": "magma",
            "compressionMode": "passive",
            "vBucketServerMap": {"hashAlgorithm": "CRC", "numReplicas": 2},
        },
        {
            "name": "cache",
            "bucketType": "ephemeral",
            "evictionPolicy": "noEviction",
            "conflictResolutionType": "lww",
            "storageBackend": "undefined",
            "compressionMode": "off",
            "vBucketServerMap": {"numReplicas": 1},
        },
    ]


@pytest.fixture
def index_status_payload():
    """Sample response for /indexStatus with a replica and a _system index."""
    return {
        "indexes": [
            {
                "indexName": "#primary",
                "bucket": "travel-sample",
                "scope": "_default",
                "collection": "_default",
                "definition": "CREATE PRIMARY INDEX `#primary` ON `travel-sample`",
                "numReplica": 1,
                "replicaId": 0,
            },
            {
                "indexName": "#primary",
                "bucket": "travel-sample",
                "scope": "_default",
                "collection": "_default",
                "definition": "CREATE PRIMARY INDEX `#primary` ON `travel-sample`",
                "numReplica": 1,
                "replicaId": 1,
            },
            {
                "indexName": "def_airportname",
                "bucket": "travel-sample",
                "scope": "inventory",
                "collection": "airport",
                "definition": "CREATE INDEX `def_airportname` ON `travel-sample`(`airportname`)",
                "numReplica": 0,
                "replicaId": 0,
            },
            {
                "indexName": "sys_idx",
                "bucket": "travel-sample",
                "scope": "_system",
                "collection": "_mobile",
                "definition": "CREATE INDEX `sys_idx` ON `travel-sample`(`x`)",
                "numReplica": 0,
                "replicaId": 0,
            },
        ]
    }


@pytest.fixture
def cluster_status_payload():
    """Sample response for /pools/nodes."""
    return {
        "balanced": True,
        "memoryQuota": 2048,
        "indexMemoryQuota": 512,
        "storageTotals": {"ram": {"total": 8589934592, "quotaUsed": 1073741824}},
        "counters": {
            "failover": 1,
            "failover_complete": 1,
            "rebalance_start": 4,
            "rebalance_success": 3,
            "rebalance_stop": 1,
        },
        "nodes": [
            {"hostname": "cb-0.local:8091", "services": ["kv", "index"], "status": "healthy"},
            {"hostname": "cb-1.local:8091", "services": ["n1ql"], "status": "healthy"},
        ],
    }


@pytest.fixture
def auto_failover_payload():
    return {
        "enabled": True,
        "timeout": 120,
        "maxCount": 3,
        "count": 1,
        "failoverOnDataDiskIssues": {"enabled": True, "timePeriod": 120},
    }


@pytest.fixture
def rebalance_payload():
    return {"status": "running", "ns_1@cb-0.local": {"progress": 42.5}}


@pytest.fixture
def server_groups_payload():
    return {
        "groups": [
            {"name": "Group 1", "nodes": [{"hostname": "cb-0.local:8091"}, {"hostname": "cb-1.local:8091"}]},
            {"name": "Group 2", "nodes": [{"hostname": "cb-2.local:8091"}]},
        ]
    }


@pytest.fixture
def cluster_responses(
    buckets_payload,
    index_status_payload,
    cluster_status_payload,
    auto_failover_payload,
    rebalance_payload,
    server_groups_payload,
):
    """Responses for all nine endpoints of a healthy cluster."""
    return {
        "/pools/default/buckets": {"json": buckets_payload},
        "/indexStatus": {"json": index_status_payload},
        "/pools/nodes": {"json": cluster_status_payload},
        "/settings/querySettings": {
            "json": {"queryCompletedThreshold": 1000, "queryCompletedLimit": 4000}
        },
        "/settings/indexes": {"json": {"storageMode": "plasma", "numReplica": 0}},
        "/settings/autoFailover": {"json": auto_failover_payload},
        "/pools/default/rebalanceProgress": {"json": rebalance_payload},
        "/pools": {"json": {"uuid": "c0ffee", "isEnterprise": True}},
        "/pools/default/serverGroups": {"json": server_groups_payload},
    }


def make_client(responses: dict[str, dict]) -> tuple[CouchbaseClient, MockTransport]:
    """Create a CouchbaseClient backed by a MockTransport."""
    transport = MockTransport(responses)
    http = httpx.Client(transport=transport, base_url="https://cb.test:18091")
    return CouchbaseClient(http=http), transport


@pytest.fixture
def aggregator(cluster_responses):
    """SnapshotAggregator over the healthy sample cluster."""
    client, _ = make_client(cluster_responses)
    return SnapshotAggregator(client=client)


@pytest.fixture
def client_factory():
    """Factory fixture: responses dict -> (CouchbaseClient, MockTransport)."""
    return make_client
