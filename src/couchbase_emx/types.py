"""
Couchbase REST API response types.

This module provides Pydantic models for the JSON bodies returned by the
Couchbase administrative REST API endpoints the exporter polls:
- /pools/default/buckets: bucket settings (a bare JSON list)
- /indexStatus: GSI index definitions
- /pools/nodes: cluster balance, quotas, node services, event counters
- /settings/querySettings, /settings/indexes, /settings/autoFailover
- /pools/default/rebalanceProgress: per-node progress (a bare JSON object)
- /pools: cluster UUID
- /pools/default/serverGroups: server group membership

These are API response types for external data validation. The aggregated
view handed to the projector lives in couchbase_emx.snapshot as dataclasses.

Notes:
- Every field has a zero-value default so a payload missing fields (or a
  403 error body) still decodes to a usable instance.
- Decoding is per field: JSON null leaves a field at its default, and a
  field whose value has the wrong type is reset to its default and its
  name recorded, while the rest of the payload is kept.
- Unknown fields are ignored (Pydantic default), the API returns far more
  than the exporter reads.
- Field names follow Python naming with the Couchbase camelCase key as alias.
"""

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    model_validator,
)

# Validation context key collecting the fields reset to their default
DROPPED_FIELDS = "dropped_fields"


def _record_dropped(info: ValidationInfo, field: str) -> None:
    if info.context is not None:
        info.context.setdefault(DROPPED_FIELDS, []).append(field)


class CouchbaseModel(BaseModel):
    """
    Base for response models: accept both alias and field name.

    Validation never fails because of a single field. Null values are
    skipped, and fields that do not validate fall back to their default.
    Pass context={DROPPED_FIELDS: []} to model_validate to learn which
    fields were reset.
    """

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="wrap")
    @classmethod
    def _validate_per_field(
        cls, data: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        if isinstance(data, BaseModel):
            return handler(data)
        if not isinstance(data, dict):
            if data is not None:
                _record_dropped(info, f"{cls.__name__} (got {type(data).__name__})")
            return handler({})

        data = {key: value for key, value in data.items() if value is not None}
        recorded = info.context.setdefault(DROPPED_FIELDS, []) if info.context is not None else None
        mark = len(recorded) if recorded is not None else 0
        try:
            return handler(data)
        except ValidationError as e:
            bad_keys = {err["loc"][0] for err in e.errors() if err["loc"]}

        # nested models record again on the second pass
        if recorded is not None:
            del recorded[mark:]

        for name, field in cls.model_fields.items():
            if name in bad_keys or field.alias in bad_keys:
                data.pop(name, None)
                data.pop(field.alias, None)
                _record_dropped(info, f"{cls.__name__}.{field.alias or name}")
        return handler(data)


# =============================================================================
# Bucket stats: GET /pools/default/buckets
# =============================================================================
# Response structure: [{"name": "travel-sample", "evictionPolicy": ..., ...}]


class VBucketServerMap(CouchbaseModel):
    """The vBucket server map; only the replica count is read."""

    num_replicas: int = Field(default=0, alias="numReplicas")


class BucketDetails(CouchbaseModel):
    """
    Single bucket entry from the bucket list.

    Eviction policy, compression mode, storage backend and conflict
    resolution are kept as raw strings here; they are mapped onto closed
    enumerations when the snapshot is built.
    """

    name: str = ""
    eviction_policy: str = Field(default="", alias="evictionPolicy")
    conflict_resolution_type: str = Field(default="", alias="conflictResolutionType")
    storage_backend: str = Field(default="", alias="storageBackend")
    compression_mode: str = Field(default="", alias="compressionMode")
    vbucket_server_map: VBucketServerMap = Field(
        default_factory=VBucketServerMap, alias="vBucketServerMap"
    )


class BucketsResponse(RootModel[list[BucketDetails]]):
    """Response from GET /pools/default/buckets (top-level JSON list)."""

    root: list[BucketDetails] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _null_as_empty(cls, data: Any) -> Any:
        return [] if data is None else data


# =============================================================================
# Index status: GET /indexStatus
# =============================================================================


class IndexStatusDetails(CouchbaseModel):
    """
    Single index entry from /indexStatus.

    Replica partitions of an index are listed as separate entries with a
    non-zero replicaId.
    """

    num_replica: int = Field(default=0, alias="numReplica")
    definition: str = ""
    index_name: str = Field(default="", alias="indexName")
    bucket: str = ""
    collection: str = ""
    scope: str = ""
    replica_id: int = Field(default=0, alias="replicaId")


class IndexStatusResponse(CouchbaseModel):
    """Response from GET /indexStatus."""

    indexes: list[IndexStatusDetails] = Field(default_factory=list)


# =============================================================================
# Cluster status: GET /pools/nodes
# =============================================================================


class NodeDetails(CouchbaseModel):
    """A cluster node; hostname is in "host:port" form."""

    hostname: str = ""
    services: list[str] = Field(default_factory=list)


class RamTotals(CouchbaseModel):
    quota_used: int = Field(default=0, alias="quotaUsed")


class StorageTotals(CouchbaseModel):
    ram: RamTotals = Field(default_factory=RamTotals)


class ClusterCounters(CouchbaseModel):
    """
    Cluster event counters.

    Couchbase only includes a counter once the event has happened at least
    once, so all of them default to 0.
    """

    failover: int = 0
    failover_start: int = 0
    failover_complete: int = 0
    failover_success: int = 0
    failover_stop: int = 0
    failover_fail: int = 0
    rebalance_start: int = 0
    rebalance_success: int = 0
    rebalance_fail: int = 0
    rebalance_stop: int = 0


class ClusterStatusResponse(CouchbaseModel):
    """
    Response from GET /pools/nodes.

    Example response (abridged):
    {
        "balanced": true,
        "memoryQuota": 2048,
        "indexMemoryQuota": 512,
        "storageTotals": {"ram": {"quotaUsed": 1073741824}},
        "counters": {"rebalance_start": 2, "rebalance_success": 2},
        "nodes": [{"hostname": "cb-0.local:8091", "services": ["kv", "n1ql"]}]
    }
    """

    nodes: list[NodeDetails] = Field(default_factory=list)
    balanced: bool = False
    memory_quota: int = Field(default=0, alias="memoryQuota")
    index_memory_quota: int = Field(default=0, alias="indexMemoryQuota")
    storage_totals: StorageTotals = Field(
        default_factory=StorageTotals, alias="storageTotals"
    )
    counters: ClusterCounters = Field(default_factory=ClusterCounters)


# =============================================================================
# Settings endpoints
# =============================================================================


class QuerySettingsResponse(CouchbaseModel):
    """Response from GET /settings/querySettings (completed-requests log)."""

    query_completed_threshold: int = Field(default=0, alias="queryCompletedThreshold")
    query_completed_limit: int = Field(default=0, alias="queryCompletedLimit")


class IndexSettingsResponse(CouchbaseModel):
    """Response from GET /settings/indexes."""

    storage_mode: str = Field(default="", alias="storageMode")


class DataDiskFailover(CouchbaseModel):
    enabled: bool = False
    time_period: int = Field(default=0, alias="timePeriod")


class AutoFailoverResponse(CouchbaseModel):
    """Response from GET /settings/autoFailover."""

    enabled: bool = False
    timeout: int = 0
    max_count: int = Field(default=0, alias="maxCount")
    count: int = 0
    failover_on_data_disk_issues: DataDiskFailover = Field(
        default_factory=DataDiskFailover, alias="failoverOnDataDiskIssues"
    )


# =============================================================================
# Rebalance progress: GET /pools/default/rebalanceProgress
# =============================================================================


class RebalanceProgressResponse(RootModel[dict[str, Any]]):
    """
    Response from GET /pools/default/rebalanceProgress.

    The body is an object keyed by "status" plus one key per node:
    {
        "status": "running",
        "ns_1@cb-0.local": {"progress": 0.42},
        "ns_1@cb-1.local": {"progress": 0.37}
    }

    Per-node values are kept undecoded; the aggregator decodes them one
    node at a time so a malformed entry only drops that node.
    """

    root: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _null_as_empty(cls, data: Any) -> Any:
        return {} if data is None else data


# =============================================================================
# Cluster identity and topology
# =============================================================================


class PoolsResponse(CouchbaseModel):
    """Response from GET /pools; only the cluster UUID is read."""

    uuid: str = ""


class ServerGroup(CouchbaseModel):
    """A server group; nodes are only counted, never inspected."""

    name: str = ""
    nodes: list[dict[str, Any]] = Field(default_factory=list)


class ServerGroupsResponse(CouchbaseModel):
    """Response from GET /pools/default/serverGroups."""

    groups: list[ServerGroup] = Field(default_factory=list)
