"""
Projection of a ClusterSnapshot onto the metric catalog.

MetricProjector turns one snapshot into a flat, deterministically ordered
list of MetricObservation values:

- Cluster scalars, labeled by cluster UUID (booleans as 1/0)
- Categorical settings as one-hot series over a closed enumeration
- Per-bucket and per-index series
- Rebalance progress per node, labeled with the node's services

The projector only reads the snapshot.
"""

import logging
from dataclasses import dataclass, field

from couchbase_emx.schema import MetricKind, MetricRegistry
from couchbase_emx.snapshot import (
    CategoricalSetting,
    ClusterSnapshot,
    CompressionMode,
    ConflictResolution,
    EvictionPolicy,
    IndexStorageEngine,
    StorageBackend,
)

logger = logging.getLogger(__name__)

# Cluster scalars in emission order: (metric name, snapshot attribute)
CLUSTER_SCALARS = (
    ("cluster_balanced", "balanced"),
    ("slow_queries_threshold", "slow_queries_threshold"),
    ("slow_queries_limit", "slow_queries_limit"),
    ("data_memory_quota", "data_memory_quota"),
    ("index_memory_quota", "index_memory_quota"),
    ("ram_quota_used", "ram_quota_used"),
    ("server_group_count", "server_group_count"),
    ("largest_server_group_count", "largest_server_group_count"),
    ("autofailover_enabled", "autofailover_enabled"),
    ("autofailover_timeout", "autofailover_timeout"),
    ("autofailover_on_disk_enabled", "autofailover_on_disk_enabled"),
    ("autofailover_on_disk_timeout", "autofailover_on_disk_timeout"),
    ("autofailover_max_count", "autofailover_max_count"),
    ("autofailover_current_count", "autofailover_current_count"),
    ("failover_counter", "failover_counter"),
    ("failover_start_counter", "failover_start_counter"),
    ("failover_complete_counter", "failover_complete_counter"),
    ("failover_success_counter", "failover_success_counter"),
    ("failover_stop_counter", "failover_stop_counter"),
    ("failover_fail_counter", "failover_fail_counter"),
    ("rebalance_start_counter", "rebalance_start_counter"),
    ("rebalance_success_counter", "rebalance_success_counter"),
    ("rebalance_fail_counter", "rebalance_fail_counter"),
    ("rebalance_stop_counter", "rebalance_stop_counter"),
)

# Per-bucket categorical metrics: (metric name, BucketRecord attribute, enumeration)
BUCKET_CATEGORICALS = (
    ("bucket_eviction_type", "eviction_policy", EvictionPolicy),
    ("bucket_compression_type", "compression_mode", CompressionMode),
    ("bucket_storage_backend", "storage_backend", StorageBackend),
    ("bucket_conflict_resolution", "conflict_resolution", ConflictResolution),
)


@dataclass(frozen=True)
class MetricObservation:
    """
    A single metric sample.

    Attributes:
        name: Descriptor name.
        value: Sample value.
        kind: Gauge or counter, copied from the descriptor.
        labels: Label values in the descriptor's label order.
    """

    name: str
    value: float
    kind: MetricKind
    labels: tuple[str, ...]


def one_hot(selected: CategoricalSetting, enum_cls: type[CategoricalSetting]) -> list[tuple[str, float]]:
    """
    Encode selected over the known members of enum_cls.

    Returns (member value, 1.0 or 0.0) pairs in declaration order. An
    UNKNOWN selection yields all zeros.
    """
    return [(member.value, 1.0 if member is selected else 0.0) for member in enum_cls.known()]


@dataclass
class MetricProjector:
    """
    Maps a ClusterSnapshot to metric observations.

    Attributes:
        registry: Metric catalog every observation is checked against.

    Example:
        projector = MetricProjector()
        for obs in projector.project(snapshot):
            print(obs.name, obs.labels, obs.value)
    """

    registry: MetricRegistry = field(default_factory=MetricRegistry)

    def _observe(self, name: str, value: float, *labels: str) -> MetricObservation:
        descriptor = self.registry.get(name)
        if len(labels) != len(descriptor.labels):
            raise ValueError(
                f"{name} expects labels {descriptor.labels}, got {len(labels)} value(s)"
            )
        return MetricObservation(name=name, value=float(value), kind=descriptor.kind, labels=labels)

    def project(self, snapshot: ClusterSnapshot) -> list[MetricObservation]:
        """
        Emit every observation for snapshot.

        Order: index storage engine, cluster scalars, rebalance progress
        (by node), per-bucket (by bucket name), per-index (by bucket, scope,
        collection, name).
        """
        uuid = snapshot.cluster_uuid
        observations: list[MetricObservation] = []

        for option, value in one_hot(snapshot.index_storage_engine, IndexStorageEngine):
            observations.append(self._observe("index_storage_engine", value, uuid, option))

        for name, attr in CLUSTER_SCALARS:
            observations.append(self._observe(name, int(getattr(snapshot, attr)), uuid))

        observations.extend(self.project_rebalance(snapshot))
        observations.extend(self.project_buckets(snapshot))
        observations.extend(self.project_indexes(snapshot))

        logger.debug(f"Projected {len(observations)} observations for cluster {uuid}")
        return observations

    def project_rebalance(self, snapshot: ClusterSnapshot) -> list[MetricObservation]:
        """
        One rebalance_status observation per node in the progress mapping.

        Node keys look like "ns_1@cb-0.local"; the part after "@" is looked
        up in the node map to fill the services label. Keys without "@" or
        hosts missing from the node map get an empty services label.
        """
        observations = []
        for host in sorted(snapshot.rebalance_progress):
            hostname = host.split("@")[1] if "@" in host else ""
            services = ",".join(snapshot.services_for(hostname))
            observations.append(
                self._observe(
                    "rebalance_status",
                    snapshot.rebalance_progress[host],
                    snapshot.cluster_uuid,
                    host,
                    services,
                )
            )
        return observations

    def project_buckets(self, snapshot: ClusterSnapshot) -> list[MetricObservation]:
        """Replica count plus the four one-hot groups for every bucket."""
        uuid = snapshot.cluster_uuid
        observations = []
        for bucket in sorted(snapshot.buckets.values(), key=lambda b: b.name):
            observations.append(
                self._observe("bucket_replica_count", bucket.replica_count, uuid, bucket.name)
            )
            for name, attr, enum_cls in BUCKET_CATEGORICALS:
                for option, value in one_hot(getattr(bucket, attr), enum_cls):
                    observations.append(self._observe(name, value, uuid, bucket.name, option))
        return observations

    def project_indexes(self, snapshot: ClusterSnapshot) -> list[MetricObservation]:
        uuid = snapshot.cluster_uuid
        indexes = sorted(
            snapshot.indexes.values(),
            key=lambda i: (i.bucket, i.scope, i.collection, i.name),
        )
        return [
            self._observe(
                "index_replica_count",
                index.replica_count,
                uuid,
                index.bucket,
                index.scope,
                index.collection,
                index.name,
                index.index_type.value,
            )
            for index in indexes
        ]
