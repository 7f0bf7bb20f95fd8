"""
Prometheus collector bridging the exporter core to prometheus_client.

CouchbaseCollector runs throttle -> aggregator -> projector on every
scrape of /metrics and converts the resulting observations into metric
families. describe() is implemented so registering the collector does not
trigger a scrape of Couchbase.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from couchbase_emx.aggregator import SnapshotAggregator
from couchbase_emx.projector import MetricObservation, MetricProjector
from couchbase_emx.schema import MetricDescriptor, MetricKind, MetricRegistry
from couchbase_emx.throttle import ScrapeThrottle

logger = logging.getLogger(__name__)


def _family(descriptor: MetricDescriptor) -> Metric:
    if descriptor.kind is MetricKind.COUNTER:
        return CounterMetricFamily(descriptor.name, descriptor.help, labels=descriptor.labels)
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=descriptor.labels)


@dataclass
class CouchbaseCollector(Collector):
    """
    Custom collector serving Couchbase cluster metrics.

    Attributes:
        aggregator: Builds the snapshot from the Couchbase REST API.
        throttle: Rejects scrapes that arrive too soon after the last one.
        projector: Maps the snapshot onto the metric catalog.

    Example:
        registry = CollectorRegistry()
        registry.register(CouchbaseCollector(aggregator=aggregator))
        start_http_server(9876, registry=registry)
    """

    aggregator: SnapshotAggregator
    throttle: ScrapeThrottle = field(default_factory=ScrapeThrottle)
    projector: MetricProjector = field(default_factory=MetricProjector)

    @property
    def registry(self) -> MetricRegistry:
        return self.projector.registry

    def describe(self) -> Iterator[Metric]:
        """Yield one empty family per catalog entry."""
        for descriptor in self.registry:
            yield _family(descriptor)

    def collect(self) -> Iterator[Metric]:
        """
        Scrape Couchbase and yield every metric family.

        Yields nothing when the throttle rejects the scrape.
        """
        if not self.throttle.try_acquire():
            return

        logger.info("Fetching the EMX stats details of couchbase host")
        snapshot = self.aggregator.collect()

        logger.info("Generating metrics for Couchbase EMX")
        observations = self.projector.project(snapshot)
        yield from self.families(observations)
        logger.info(f"Collected {len(observations)} samples")

    def families(self, observations: list[MetricObservation]) -> list[Metric]:
        """Group observations into families, in catalog order."""
        families = {descriptor.name: _family(descriptor) for descriptor in self.registry}
        for obs in observations:
            families[obs.name].add_metric(list(obs.labels), obs.value)
        return list(families.values())
