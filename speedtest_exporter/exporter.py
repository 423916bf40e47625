"""Prometheus collector that runs a speedtest on every scrape."""

from __future__ import annotations

import logging
from typing import Iterable

from prometheus_client.core import GaugeMetricFamily

from .measurements.cycle import CycleOrchestrator
from .metrics import MetricRegistry, to_metric_families

LOGGER = logging.getLogger(__name__)


class SpeedtestCollector:
    """Custom collector for ``prometheus_client.CollectorRegistry``."""

    def __init__(self, registry: MetricRegistry, orchestrator: CycleOrchestrator):
        self.registry = registry
        self.orchestrator = orchestrator

    def describe(self) -> Iterable[GaugeMetricFamily]:
        # registering the collector must not trigger a speedtest
        return [descriptor.family() for descriptor in self.registry]

    def collect(self) -> Iterable[GaugeMetricFamily]:
        snapshot = self.orchestrator.run_cycle()
        LOGGER.debug("Exporting %d samples for test %s", len(snapshot.samples), snapshot.test_uuid)
        return to_metric_families(self.registry, snapshot.samples)
