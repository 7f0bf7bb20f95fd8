"""
Couchbase enhanced metrics exporter.

Polls the Couchbase administrative REST API and republishes cluster
settings, topology and event counters as Prometheus metrics. It includes:

- CouchbaseClient: one best-effort GET per endpoint
- SnapshotAggregator: merges nine endpoint responses into a ClusterSnapshot
- MetricProjector: maps the snapshot onto the metric catalog
- ScrapeThrottle: minimum interval between scrapes
- CouchbaseCollector: prometheus_client collector tying the above together
"""

from couchbase_emx.aggregator import EndpointResponses, SnapshotAggregator, build_snapshot
from couchbase_emx.cb_client import CouchbaseClient, FetchOutcome, FetchResult
from couchbase_emx.collector import CouchbaseCollector
from couchbase_emx.config import Settings
from couchbase_emx.projector import MetricObservation, MetricProjector
from couchbase_emx.schema import METRIC_DESCRIPTORS, MetricDescriptor, MetricKind, MetricRegistry
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
from couchbase_emx.throttle import ScrapeThrottle, ThrottleState

__all__ = [
    # Fetching and aggregation
    "CouchbaseClient",
    "FetchOutcome",
    "FetchResult",
    "EndpointResponses",
    "SnapshotAggregator",
    "build_snapshot",
    # Snapshot types
    "ClusterSnapshot",
    "BucketRecord",
    "IndexRecord",
    "IndexType",
    "IndexStorageEngine",
    "EvictionPolicy",
    "CompressionMode",
    "StorageBackend",
    "ConflictResolution",
    # Metrics
    "METRIC_DESCRIPTORS",
    "MetricDescriptor",
    "MetricKind",
    "MetricRegistry",
    "MetricObservation",
    "MetricProjector",
    "CouchbaseCollector",
    # Scrape control and config
    "ScrapeThrottle",
    "ThrottleState",
    "Settings",
]
