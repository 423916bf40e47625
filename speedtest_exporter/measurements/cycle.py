"""One collection cycle: identity, server selection, three phases, snapshot."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional, Tuple

from ..metrics import MetricRegistry, MetricSink
from .errors import ProbeError
from .models import Candidate, PhaseResult, Snapshot
from .phases import PhaseRunner
from .provider import MeasurementProvider
from .selector import select_server

LOGGER = logging.getLogger(__name__)

ProviderFactory = Callable[[], MeasurementProvider]


class CycleOrchestrator:
    """Runs a full speedtest each time :meth:`run_cycle` is called.

    Nothing is kept between cycles: each one gets a fresh provider and sink,
    and only the read-only settings passed in here are shared.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        provider_factory: ProviderFactory,
        server_id: Optional[int],
        server_fallback: bool,
    ) -> None:
        self.registry = registry
        self.provider_factory = provider_factory
        self.server_id = server_id
        self.server_fallback = server_fallback

    def run_cycle(self) -> Snapshot:
        test_uuid = str(uuid.uuid4())
        start = time.monotonic()
        sink = MetricSink()

        server, phases = self._speedtest(test_uuid, sink)
        success = bool(phases) and all(result.success for result in phases)

        # up and scrape_duration are reported whatever happened above
        duration = time.monotonic() - start
        sink.emit(self.registry.scrape_duration, duration, test_uuid)
        sink.emit(self.registry.up, 1.0 if success else 0.0, test_uuid)

        LOGGER.info(
            "Speedtest %s finished in %.2fs (%s)",
            test_uuid,
            duration,
            "success" if success else "failure",
        )
        return Snapshot(
            test_uuid=test_uuid,
            success=success,
            duration_seconds=duration,
            server=server,
            phases=phases,
            samples=sink.samples,
        )

    def _speedtest(
        self, test_uuid: str, sink: MetricSink
    ) -> Tuple[Optional[Candidate], Tuple[PhaseResult, ...]]:
        provider = self.provider_factory()
        try:
            identity = provider.fetch_identity()
            candidates = provider.fetch_candidates(identity)
            server = select_server(self.server_id, self.server_fallback, candidates)
        except ProbeError as exc:
            LOGGER.error("%s", exc)
            return None, ()

        LOGGER.info(
            "Starting speedtest with server %s (%s, %s) [id: %s]",
            server.name,
            server.country,
            server.host,
            server.server_id,
        )
        runner = PhaseRunner(provider, self.registry)
        return server, runner.run_all(test_uuid, identity, server, sink)
