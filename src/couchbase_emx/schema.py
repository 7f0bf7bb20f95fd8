"""
Metric catalog for the exporter.

Every metric the exporter can emit is declared here once, with its help
text, ordered label names and value kind. The projector refuses to emit
anything that is not in the catalog, and the Prometheus collector uses it
to describe metrics at registration time without scraping Couchbase.

Categorical ("selected state") metrics carry an extra label holding the
enumeration value; exactly one of them is 1 for a recognised setting.
"""

from dataclasses import dataclass
from enum import Enum

CLUSTER_LABELS = ("cluster_uuid",)
BUCKET_LABELS = ("cluster_uuid", "bucket")
INDEX_LABELS = ("cluster_uuid", "bucket", "scope", "collection", "index_name", "index_type")


class MetricKind(str, Enum):
    """Prometheus value type of a metric."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricDescriptor:
    """
    Describes a metric the exporter publishes.

    Attributes:
        name: Metric name as exposed (counters gain a _total suffix on the wire).
        help: Help text.
        labels: Ordered label names; observations supply values in this order.
        kind: Gauge or counter.
    """

    name: str
    help: str
    labels: tuple[str, ...] = CLUSTER_LABELS
    kind: MetricKind = MetricKind.GAUGE

    @property
    def sample_name(self) -> str:
        """Series name on the wire; prometheus_client appends _total to counters."""
        if self.kind is MetricKind.COUNTER:
            return f"{self.name}_total"
        return self.name


def _gauge(name: str, help: str, labels: tuple[str, ...] = CLUSTER_LABELS) -> MetricDescriptor:
    return MetricDescriptor(name, help, labels, MetricKind.GAUGE)


def _counter(name: str, help: str) -> MetricDescriptor:
    return MetricDescriptor(name, help, CLUSTER_LABELS, MetricKind.COUNTER)


METRIC_DESCRIPTORS: tuple[MetricDescriptor, ...] = (
    # Per bucket
    _gauge("bucket_replica_count", "The total number of replicas for a bucket.", BUCKET_LABELS),
    _gauge(
        "bucket_eviction_type",
        "The bucket eviction type {valueOnly/fullEviction/noEviction/nruEviction} selected state(1 - selected).",
        BUCKET_LABELS + ("eviction",),
    ),
    _gauge(
        "bucket_compression_type",
        "The bucket compression type {off/passive/active} selected state(1 - selected).",
        BUCKET_LABELS + ("compression",),
    ),
    _gauge(
        "bucket_storage_backend",
        "The bucket storage backend type {couchstore/magma/undefined} selected state(1 - selected).",
        BUCKET_LABELS + ("storage_backend",),
    ),
    _gauge(
        "bucket_conflict_resolution",
        "The bucket conflict resolution {seqno/lww/custom} selected state(1 - selected).",
        BUCKET_LABELS + ("conflict_resolution",),
    ),
    # Per index
    _gauge("index_replica_count", "The total number replicas for an index.", INDEX_LABELS),
    # Cluster
    _gauge(
        "index_storage_engine",
        "Index Storage Engine type {memory_optimize/plasma} selected state(1 - selected).",
        CLUSTER_LABELS + ("index_engine",),
    ),
    _gauge("cluster_balanced", "Cluster balance state 0/1 --> false/true."),
    _gauge("server_group_count", "Number of server groups in the cluster."),
    _gauge("largest_server_group_count", "Size of largest server group in the cluster."),
    _gauge("slow_queries_threshold", "The threshold for minimum query duration in ms for slow query logging."),
    _gauge("slow_queries_limit", "Retention limit for slow query logging."),
    _gauge("data_memory_quota", "The Data service memory quota in MB."),
    _gauge("index_memory_quota", "The Index service memory quota in MB."),
    _gauge("ram_quota_used", "Total RAM quota used in bytes."),
    # Autofailover
    _gauge("autofailover_enabled", "The Autofailover state 0/1 --> disabled/enabled."),
    _gauge("autofailover_timeout", "The Autofailover timeout in seconds."),
    _gauge("autofailover_on_disk_enabled", "The 'Autofailover On Disk Failures' state 0/1 --> disabled/enabled."),
    _gauge("autofailover_on_disk_timeout", "The 'Autofailover On Disk Failures' timeout in seconds"),
    _gauge("autofailover_max_count", "Maximum count for auto-failed servers."),
    _counter("autofailover_current_count", "Current count of auto-failed servers."),
    # Failovers
    _counter("failover_counter", "The number of failovers performed."),
    _counter("failover_start_counter", "The total number of failovers started."),
    _counter("failover_complete_counter", "The total number of failovers completed."),
    _counter("failover_success_counter", "The total number of failovers completed successfully."),
    _counter("failover_stop_counter", "The total number of failovers stopped before completion."),
    _counter("failover_fail_counter", "The total number of failovers that failed."),
    # Rebalances
    _counter("rebalance_start_counter", "The total number of rebalances started."),
    _counter("rebalance_success_counter", "The total number of rebalances completed successfully."),
    _counter("rebalance_fail_counter", "The total number of rebalances that failed."),
    _counter("rebalance_stop_counter", "The total number of rebalances stopped before completion."),
    _gauge(
        "rebalance_status",
        "The current rebalance progress per node.",
        CLUSTER_LABELS + ("node", "services"),
    ),
)


class MetricRegistry:
    """
    Read-only lookup over a fixed set of metric descriptors.

    Example:
        registry = MetricRegistry()
        descriptor = registry.get("cluster_balanced")
        print(descriptor.help, descriptor.labels)
    """

    def __init__(self, descriptors: tuple[MetricDescriptor, ...] = METRIC_DESCRIPTORS) -> None:
        by_name: dict[str, MetricDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in by_name:
                raise ValueError(f"Duplicate metric descriptor: {descriptor.name}")
            by_name[descriptor.name] = descriptor
        self._descriptors = descriptors
        self._by_name = by_name

    def __iter__(self):
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def get(self, name: str) -> MetricDescriptor:
        """Return the descriptor for name; KeyError if it is not registered."""
        return self._by_name[name]
