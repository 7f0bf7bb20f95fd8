"""
Snapshot aggregation over the Couchbase REST API.

SnapshotAggregator fans out to the nine endpoints the exporter reads,
one request after another, and merges the decoded responses into a
single ClusterSnapshot.

Every endpoint is fetched regardless of how the others went. A failed
endpoint leaves its part of the snapshot at zero values; the snapshot is
always produced. Cross-endpoint derivations (node services, index
classification, server group sizes, rebalance progress) are done by the
pure build_snapshot() function so they can be tested without HTTP.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from couchbase_emx.cb_client import CouchbaseClient, FetchOutcome
from couchbase_emx.snapshot import (
    BucketRecord,
    ClusterSnapshot,
    CompressionMode,
    ConflictResolution,
    EvictionPolicy,
    IndexRecord,
    IndexStorageEngine,
    IndexType,
    StorageBackend,
)
from couchbase_emx.types import (
    AutoFailoverResponse,
    BucketsResponse,
    ClusterStatusResponse,
    IndexSettingsResponse,
    IndexStatusResponse,
    PoolsResponse,
    QuerySettingsResponse,
    RebalanceProgressResponse,
    ServerGroupsResponse,
)

logger = logging.getLogger(__name__)

# Couchbase endpoints for stat gathering
ENDPOINT_BUCKET_STATS = "/pools/default/buckets"
ENDPOINT_INDEX_STATUS = "/indexStatus"
ENDPOINT_CLUSTER_STATUS = "/pools/nodes"
ENDPOINT_QUERY_SETTINGS = "/settings/querySettings"
ENDPOINT_INDEX_SETTINGS = "/settings/indexes"
ENDPOINT_AUTO_FAILOVER = "/settings/autoFailover"
ENDPOINT_REBALANCE = "/pools/default/rebalanceProgress"
ENDPOINT_CLUSTER_UUID = "/pools"
ENDPOINT_SERVER_GROUPS = "/pools/default/serverGroups"

SYSTEM_SCOPE = "_system"
REBALANCE_STATUS_KEY = "status"
PRIMARY_INDEX_MARKER = "create primary"


@dataclass
class EndpointResponses:
    """
    Decoded responses of one scrape, one attribute per endpoint.

    Attributes default to empty models, which is also what a failed fetch
    yields.
    """

    buckets: BucketsResponse = field(default_factory=BucketsResponse)
    index_status: IndexStatusResponse = field(default_factory=IndexStatusResponse)
    cluster_status: ClusterStatusResponse = field(default_factory=ClusterStatusResponse)
    query_settings: QuerySettingsResponse = field(default_factory=QuerySettingsResponse)
    index_settings: IndexSettingsResponse = field(default_factory=IndexSettingsResponse)
    auto_failover: AutoFailoverResponse = field(default_factory=AutoFailoverResponse)
    rebalance: RebalanceProgressResponse = field(default_factory=RebalanceProgressResponse)
    pools: PoolsResponse = field(default_factory=PoolsResponse)
    server_groups: ServerGroupsResponse = field(default_factory=ServerGroupsResponse)


# (attribute on EndpointResponses, endpoint path, response model), in fetch order
ENDPOINTS: tuple[tuple[str, str, type], ...] = (
    ("buckets", ENDPOINT_BUCKET_STATS, BucketsResponse),
    ("index_status", ENDPOINT_INDEX_STATUS, IndexStatusResponse),
    ("cluster_status", ENDPOINT_CLUSTER_STATUS, ClusterStatusResponse),
    ("query_settings", ENDPOINT_QUERY_SETTINGS, QuerySettingsResponse),
    ("index_settings", ENDPOINT_INDEX_SETTINGS, IndexSettingsResponse),
    ("auto_failover", ENDPOINT_AUTO_FAILOVER, AutoFailoverResponse),
    ("rebalance", ENDPOINT_REBALANCE, RebalanceProgressResponse),
    ("pools", ENDPOINT_CLUSTER_UUID, PoolsResponse),
    ("server_groups", ENDPOINT_SERVER_GROUPS, ServerGroupsResponse),
)


@dataclass
class SnapshotAggregator:
    """
    Builds one ClusterSnapshot per call from the Couchbase REST API.

    Attributes:
        client: CouchbaseClient used for every endpoint.
        last_outcomes: Endpoint path to FetchOutcome for the most recent
            collect() call. Informational only; it never changes what
            collect() returns.

    Example:
        with httpx.Client(base_url="http://localhost:8091") as http:
            aggregator = SnapshotAggregator(client=CouchbaseClient(http=http))
            snapshot = aggregator.collect()
            print(snapshot.cluster_uuid, len(snapshot.buckets))
    """

    client: CouchbaseClient
    last_outcomes: dict[str, FetchOutcome] = field(default_factory=dict)

    def fetch_all(self) -> EndpointResponses:
        """
        Fetch every endpoint once, sequentially.

        Failures are absorbed: the corresponding attribute keeps the value
        returned in the FetchResult (the model default on failure).
        """
        responses = EndpointResponses()
        outcomes: dict[str, FetchOutcome] = {}

        logger.info("Collecting stats from Couchbase endpoints")
        for attr, path, model in ENDPOINTS:
            result = self.client.fetch(path, model)
            outcomes[path] = result.outcome
            if not result.ok:
                logger.warning(f"Endpoint {path} returned {result.outcome.value}: {result.error}")
            setattr(responses, attr, result.value)

        self.last_outcomes = outcomes
        failed = [path for path, outcome in outcomes.items() if outcome is not FetchOutcome.SUCCESS]
        if failed:
            logger.warning(f"Snapshot built with {len(failed)} degraded endpoint(s): {', '.join(failed)}")
        return responses

    def collect(self) -> ClusterSnapshot:
        """Fetch all endpoints and build the snapshot."""
        return build_snapshot(self.fetch_all())


def build_snapshot(responses: EndpointResponses) -> ClusterSnapshot:
    """
    Merge decoded endpoint responses into a ClusterSnapshot.

    Args:
        responses: One decoded response per endpoint.

    Returns:
        Immutable snapshot; scalars are copied verbatim, collections derived.
    """
    cluster = responses.cluster_status
    auto_failover = responses.auto_failover
    counters = cluster.counters
    group_count, largest_group = server_group_sizes(responses.server_groups)

    return ClusterSnapshot(
        cluster_uuid=responses.pools.uuid,
        balanced=cluster.balanced,
        data_memory_quota=cluster.memory_quota,
        index_memory_quota=cluster.index_memory_quota,
        ram_quota_used=cluster.storage_totals.ram.quota_used,
        slow_queries_threshold=responses.query_settings.query_completed_threshold,
        slow_queries_limit=responses.query_settings.query_completed_limit,
        index_storage_engine=_categorical(
            IndexStorageEngine, responses.index_settings.storage_mode, "index storage engine"
        ),
        autofailover_enabled=auto_failover.enabled,
        autofailover_timeout=auto_failover.timeout,
        autofailover_on_disk_enabled=auto_failover.failover_on_data_disk_issues.enabled,
        autofailover_on_disk_timeout=auto_failover.failover_on_data_disk_issues.time_period,
        autofailover_max_count=auto_failover.max_count,
        autofailover_current_count=auto_failover.count,
        failover_counter=counters.failover,
        failover_start_counter=counters.failover_start,
        failover_complete_counter=counters.failover_complete,
        failover_success_counter=counters.failover_success,
        failover_stop_counter=counters.failover_stop,
        failover_fail_counter=counters.failover_fail,
        rebalance_start_counter=counters.rebalance_start,
        rebalance_success_counter=counters.rebalance_success,
        rebalance_fail_counter=counters.rebalance_fail,
        rebalance_stop_counter=counters.rebalance_stop,
        rebalance_progress=MappingProxyType(parse_rebalance_progress(responses.rebalance)),
        server_group_count=group_count,
        largest_server_group_count=largest_group,
        buckets=MappingProxyType(bucket_records(responses.buckets)),
        indexes=MappingProxyType(index_records(responses.index_status)),
        nodes=MappingProxyType(node_services(cluster)),
    )


def _categorical(enum_cls, raw: str, what: str):
    value = enum_cls(raw)
    if value is enum_cls.UNKNOWN and raw:
        logger.warning(f"Unrecognised {what} '{raw}', all {what} states will report 0")
    return value


def bucket_records(buckets: BucketsResponse) -> dict[int, BucketRecord]:
    """One BucketRecord per bucket entry, keyed by position."""
    records: dict[int, BucketRecord] = {}
    for i, bucket in enumerate(buckets.root):
        records[i] = BucketRecord(
            name=bucket.name,
            replica_count=bucket.vbucket_server_map.num_replicas,
            eviction_policy=_categorical(EvictionPolicy, bucket.eviction_policy, "eviction policy"),
            compression_mode=_categorical(CompressionMode, bucket.compression_mode, "compression mode"),
            storage_backend=_categorical(StorageBackend, bucket.storage_backend, "storage backend"),
            conflict_resolution=_categorical(
                ConflictResolution, bucket.conflict_resolution_type, "conflict resolution"
            ),
        )
    return records


def node_services(cluster: ClusterStatusResponse) -> dict[str, tuple[str, ...]]:
    """Hostname (truncated at the first colon) to the node's services."""
    nodes: dict[str, tuple[str, ...]] = {}
    for node in cluster.nodes:
        hostname = node.hostname.split(":")[0]
        nodes[hostname] = tuple(node.services)
    return nodes


def classify_index(definition: str) -> IndexType:
    """primary if the definition contains "create primary" (any case)."""
    if PRIMARY_INDEX_MARKER in definition.lower():
        return IndexType.PRIMARY
    return IndexType.SECONDARY


def index_records(index_status: IndexStatusResponse) -> dict[int, IndexRecord]:
    """
    Canonical indexes keyed by their position in the response.

    Replica entries (replicaId != 0) are skipped so each index is counted
    once, and indexes in the _system scope are not exported.
    """
    records: dict[int, IndexRecord] = {}
    for i, index in enumerate(index_status.indexes):
        if index.replica_id != 0:
            continue
        if index.scope == SYSTEM_SCOPE:
            continue
        records[i] = IndexRecord(
            name=index.index_name,
            bucket=index.bucket,
            scope=index.scope,
            collection=index.collection,
            replica_count=index.num_replica,
            index_type=classify_index(index.definition),
        )
    return records


def server_group_sizes(server_groups: ServerGroupsResponse) -> tuple[int, int]:
    """Return (group count, node count of the largest group); (0, 0) if none."""
    groups = server_groups.groups
    largest = max((len(group.nodes) for group in groups), default=0)
    return len(groups), largest


def _is_number(value: Any) -> bool:
    # bool is a subclass of int
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_rebalance_progress(rebalance: RebalanceProgressResponse) -> dict[str, float]:
    """
    Extract per-node progress from the rebalance payload.

    Every key except "status" is a node whose value should be an object
    with a single numeric entry, e.g. {"progress": 0.42}. If the object has
    several numeric entries the last one wins. A node whose value is not an
    object is logged and skipped; non-numeric entries are logged and
    ignored. Other nodes are unaffected either way.
    """
    progress: dict[str, float] = {}
    for host, details in rebalance.root.items():
        if host == REBALANCE_STATUS_KEY:
            continue
        if not isinstance(details, dict):
            logger.error(f"Error decoding rebalance progress for {host}: expected object, got {type(details).__name__}")
            continue
        for key, value in details.items():
            if not _is_number(value):
                logger.error(f"Error decoding rebalance progress for {host}: {key}={value!r} is not a number")
                continue
            progress[host] = float(value)
    return progress
