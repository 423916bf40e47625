"""Latency, download and upload probes against the selected server."""

from __future__ import annotations

import logging
from typing import Tuple

from ..metrics import MetricDescriptor, MetricRegistry, MetricSink
from .errors import PHASE_DOWNLOAD, PHASE_LATENCY, PHASE_UPLOAD, PhaseError
from .models import Candidate, Identity, PhaseResult, ThroughputReading
from .normalize import normalize_speed
from .provider import MeasurementProvider

LOGGER = logging.getLogger(__name__)


def context_labels(test_uuid: str, identity: Identity, candidate: Candidate) -> Tuple[str, ...]:
    """Label values shared by the latency and throughput gauges."""
    return (
        test_uuid,
        identity.lat,
        identity.lon,
        identity.ip,
        identity.isp,
        candidate.lat,
        candidate.lon,
        candidate.server_id,
        candidate.name,
        candidate.country,
        candidate.distance_label,
    )


class PhaseRunner:
    """Runs each probe phase independently; a failed phase only fails itself."""

    def __init__(self, provider: MeasurementProvider, registry: MetricRegistry):
        self.provider = provider
        self.registry = registry

    def latency(self, test_uuid: str, identity: Identity, candidate: Candidate, sink: MetricSink) -> PhaseResult:
        try:
            seconds = self.provider.ping(candidate)
        except PhaseError as exc:
            LOGGER.error("failed to carry out ping test: %s", exc)
            return PhaseResult(PHASE_LATENCY, False)

        sink.emit(self.registry.latency, seconds, *context_labels(test_uuid, identity, candidate))
        LOGGER.info("Ping test successful. Latency: %.3fms", seconds * 1000)
        return PhaseResult(PHASE_LATENCY, True, seconds)

    def download(self, test_uuid: str, identity: Identity, candidate: Candidate, sink: MetricSink) -> PhaseResult:
        try:
            reading = self.provider.download(candidate, account_bytes=False)
        except PhaseError as exc:
            LOGGER.error("failed to carry out download test: %s", exc)
            return PhaseResult(PHASE_DOWNLOAD, False)
        return self._record_throughput(PHASE_DOWNLOAD, self.registry.download, reading, test_uuid, identity, candidate, sink)

    def upload(self, test_uuid: str, identity: Identity, candidate: Candidate, sink: MetricSink) -> PhaseResult:
        try:
            reading = self.provider.upload(candidate, account_bytes=False)
        except PhaseError as exc:
            LOGGER.error("failed to carry out upload test: %s", exc)
            return PhaseResult(PHASE_UPLOAD, False)
        return self._record_throughput(PHASE_UPLOAD, self.registry.upload, reading, test_uuid, identity, candidate, sink)

    def run_all(self, test_uuid: str, identity: Identity, candidate: Candidate, sink: MetricSink) -> Tuple[PhaseResult, ...]:
        # every phase runs, whatever happened to the one before it
        return (
            self.latency(test_uuid, identity, candidate, sink),
            self.download(test_uuid, identity, candidate, sink),
            self.upload(test_uuid, identity, candidate, sink),
        )

    @staticmethod
    def _record_throughput(
        phase: str,
        descriptor: MetricDescriptor,
        reading: ThroughputReading,
        test_uuid: str,
        identity: Identity,
        candidate: Candidate,
        sink: MetricSink,
    ) -> PhaseResult:
        speed_bps = normalize_speed(reading.raw)
        sink.emit(descriptor, speed_bps, *context_labels(test_uuid, identity, candidate))
        LOGGER.info(
            "%s test successful. Speed: %.2f B/s (%.2f MB/s)",
            phase.capitalize(),
            speed_bps,
            speed_bps / 1000 / 1000,
        )
        return PhaseResult(phase, True, speed_bps)
