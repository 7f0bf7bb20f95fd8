"""
Aggregated cluster state produced by one scrape.

This module defines the internal types the aggregator builds and the
projector reads. They are not API models: response parsing lives in
couchbase_emx.types.

All records are frozen dataclasses and the snapshot's collections are
read-only mappings, so a snapshot cannot change once built.

Categorical settings are closed str enums with an explicit UNKNOWN member.
Any raw value outside the enumeration maps to UNKNOWN instead of being
carried around as a free-form string.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class CategoricalSetting(str, Enum):
    """
    Base for closed enumerations of Couchbase settings.

    Subclasses must define an UNKNOWN member. Looking up a value that is
    not a member returns UNKNOWN rather than raising.
    """

    @classmethod
    def _missing_(cls, value: object) -> "CategoricalSetting":
        return cls["UNKNOWN"]

    @classmethod
    def known(cls) -> list["CategoricalSetting"]:
        """Members in declaration order, excluding UNKNOWN."""
        return [member for member in cls if member.name != "UNKNOWN"]


class IndexStorageEngine(CategoricalSetting):
    """GSI storage mode from /settings/indexes."""

    MEMORY_OPTIMIZED = "memory_optimize"
    PLASMA = "plasma"
    UNKNOWN = "unknown"


class EvictionPolicy(CategoricalSetting):
    VALUE_ONLY = "valueOnly"
    FULL_EVICTION = "fullEviction"
    NO_EVICTION = "noEviction"
    NRU_EVICTION = "nruEviction"
    UNKNOWN = "unknown"


class CompressionMode(CategoricalSetting):
    OFF = "off"
    PASSIVE = "passive"
    ACTIVE = "active"
    UNKNOWN = "unknown"


class StorageBackend(CategoricalSetting):
    """
    Bucket storage backend.

    "undefined" is a real value reported by Couchbase (ephemeral and
    memcached buckets), distinct from UNKNOWN.
    """

    COUCHSTORE = "couchstore"
    MAGMA = "magma"
    UNDEFINED = "undefined"
    UNKNOWN = "unknown"


class ConflictResolution(CategoricalSetting):
    SEQNO = "seqno"
    LWW = "lww"
    CUSTOM = "custom"
    UNKNOWN = "unknown"


class IndexType(str, Enum):
    """Index classification derived from the index definition."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class BucketRecord:
    """
    Settings of a single bucket.

    Attributes:
        name: Bucket name, unique within the cluster.
        replica_count: Configured number of replicas (vBucketServerMap.numReplicas).
        eviction_policy: Eviction policy.
        compression_mode: Compression mode.
        storage_backend: Storage engine backing the bucket.
        conflict_resolution: XDCR conflict resolution mode.
    """

    name: str
    replica_count: int = 0
    eviction_policy: EvictionPolicy = EvictionPolicy.UNKNOWN
    compression_mode: CompressionMode = CompressionMode.UNKNOWN
    storage_backend: StorageBackend = StorageBackend.UNKNOWN
    conflict_resolution: ConflictResolution = ConflictResolution.UNKNOWN


@dataclass(frozen=True)
class IndexRecord:
    """
    A canonical (replicaId 0) GSI index outside the _system scope.

    Attributes:
        name: Index name.
        bucket: Bucket the index belongs to.
        scope: Scope within the bucket.
        collection: Collection within the scope.
        replica_count: Configured number of index replicas.
        index_type: primary or secondary.
    """

    name: str
    bucket: str
    scope: str
    collection: str
    replica_count: int = 0
    index_type: IndexType = IndexType.SECONDARY


def _frozen_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Unified view of the cluster for one scrape.

    Every field defaults to its zero value; a field whose endpoint could
    not be fetched or decoded keeps that default.

    Attributes:
        cluster_uuid: Cluster UUID from /pools.
        balanced: Whether the cluster reports itself balanced.
        data_memory_quota: Data service memory quota in MB.
        index_memory_quota: Index service memory quota in MB.
        ram_quota_used: Total RAM quota used in bytes.
        slow_queries_threshold: Minimum duration (ms) for completed-request logging.
        slow_queries_limit: Retention limit of the completed-request log.
        index_storage_engine: GSI storage mode.
        autofailover_*: Autofailover settings and current count.
        failover_*_counter / rebalance_*_counter: Cluster event counters.
        rebalance_progress: Raw node key (e.g. "ns_1@host") to progress.
        server_group_count: Number of server groups.
        largest_server_group_count: Node count of the largest server group.
        buckets: Position to BucketRecord; the key carries no meaning.
        indexes: Position to IndexRecord; the key carries no meaning.
        nodes: Hostname without port to the services it runs.
    """

    cluster_uuid: str = ""
    balanced: bool = False
    data_memory_quota: int = 0
    index_memory_quota: int = 0
    ram_quota_used: int = 0
    slow_queries_threshold: int = 0
    slow_queries_limit: int = 0
    index_storage_engine: IndexStorageEngine = IndexStorageEngine.UNKNOWN

    autofailover_enabled: bool = False
    autofailover_timeout: int = 0
    autofailover_on_disk_enabled: bool = False
    autofailover_on_disk_timeout: int = 0
    autofailover_max_count: int = 0
    autofailover_current_count: int = 0

    failover_counter: int = 0
    failover_start_counter: int = 0
    failover_complete_counter: int = 0
    failover_success_counter: int = 0
    failover_stop_counter: int = 0
    failover_fail_counter: int = 0
    rebalance_start_counter: int = 0
    rebalance_success_counter: int = 0
    rebalance_fail_counter: int = 0
    rebalance_stop_counter: int = 0

    rebalance_progress: Mapping[str, float] = field(default_factory=_frozen_mapping)
    server_group_count: int = 0
    largest_server_group_count: int = 0

    buckets: Mapping[int, BucketRecord] = field(default_factory=_frozen_mapping)
    indexes: Mapping[int, IndexRecord] = field(default_factory=_frozen_mapping)
    nodes: Mapping[str, tuple[str, ...]] = field(default_factory=_frozen_mapping)

    def services_for(self, hostname: str) -> tuple[str, ...]:
        """Services running on hostname, empty if the node is unknown."""
        return self.nodes.get(hostname, ())
