"""Measurement providers.

The cycle only talks to :class:`MeasurementProvider`. The default
implementation drives the ``speedtest-cli`` library against speedtest.net
servers; tests plug in their own.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, List, Optional

import speedtest

from ..config import SpeedtestConfig
from .errors import (
    PHASE_DOWNLOAD,
    PHASE_LATENCY,
    PHASE_UPLOAD,
    CandidateFetchError,
    IdentityFetchError,
    PhaseError,
)
from .models import Candidate, Identity, ThroughputReading

LOGGER = logging.getLogger(__name__)

# speedtest-cli reports its own failures through SpeedtestException, but raw
# socket errors can still escape from the HTTP layer.
PROVIDER_ERRORS = (speedtest.SpeedtestException, OSError)

# speedtest-cli swallows network failures instead of raising. A failed latency
# request is counted as 3600s in an average over 6, so any failure pushes the
# reported ping to at least 600,000ms; a failed transfer moves zero bytes.
FAILED_LATENCY_MS = 3600 * 1000 / 6


class MeasurementProvider(abc.ABC):
    """Source of identity, server list and the three probe operations.

    A provider instance serves exactly one cycle.
    """

    @abc.abstractmethod
    def fetch_identity(self) -> Identity:
        """Return the caller's location and ISP. Raises IdentityFetchError."""

    @abc.abstractmethod
    def fetch_candidates(self, identity: Identity) -> List[Candidate]:
        """Return servers ordered by distance, closest first. Raises CandidateFetchError."""

    @abc.abstractmethod
    def ping(self, candidate: Candidate) -> float:
        """Return latency to ``candidate`` in seconds. Raises PhaseError."""

    @abc.abstractmethod
    def download(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        """Measure download throughput. Raises PhaseError."""

    @abc.abstractmethod
    def upload(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        """Measure upload throughput. Raises PhaseError."""


class SpeedtestCliProvider(MeasurementProvider):
    """Provider backed by speedtest-cli 2.1.x.

    Besides its public API this relies on two library details: the latency
    and zero-byte sentinels above, and the private ``Speedtest._best`` cache
    that download() and upload() read their server from. The dependency is
    pinned below 2.2 for that reason.
    """

    def __init__(self, config: SpeedtestConfig):
        self.config = config
        self._client: Optional[speedtest.Speedtest] = None

    @property
    def client(self) -> speedtest.Speedtest:
        if self._client is None:
            raise RuntimeError("speedtest client not initialised, fetch the identity first")
        return self._client

    def fetch_identity(self) -> Identity:
        try:
            # the constructor downloads speedtest.net's client configuration
            self._client = speedtest.Speedtest(
                source_address=self.config.source_address,
                timeout=self.config.timeout,
                secure=self.config.secure,
            )
        except PROVIDER_ERRORS as exc:
            raise IdentityFetchError(f"could not fetch user information: {exc}") from exc

        client_info = self._client.config.get("client", {})
        return Identity(
            lat=str(client_info.get("lat", "")),
            lon=str(client_info.get("lon", "")),
            ip=str(client_info.get("ip", "")),
            isp=str(client_info.get("isp", "")),
        )

    def fetch_candidates(self, identity: Identity) -> List[Candidate]:
        # the client already knows where it is; identity is not needed here
        try:
            servers = self.client.get_servers()
        except PROVIDER_ERRORS as exc:
            raise CandidateFetchError(f"could not fetch server list: {exc}") from exc

        candidates = []
        for distance in sorted(servers):
            for server in servers[distance]:
                candidates.append(_candidate_from_server(server, distance))
        LOGGER.debug("Fetched %d speedtest servers", len(candidates))
        return candidates

    def ping(self, candidate: Candidate) -> float:
        try:
            self.client.get_best_server([_server_from_candidate(candidate)])
        except PROVIDER_ERRORS as exc:
            raise PhaseError(PHASE_LATENCY, str(exc)) from exc
        # results.ping is in milliseconds
        latency_ms = self.client.results.ping
        if latency_ms >= FAILED_LATENCY_MS:
            raise PhaseError(PHASE_LATENCY, f"latency requests to {candidate.host} failed")
        return latency_ms / 1000.0

    def download(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        self._target(candidate)
        try:
            raw = self.client.download()
        except PROVIDER_ERRORS as exc:
            raise PhaseError(PHASE_DOWNLOAD, str(exc)) from exc
        received = self.client.results.bytes_received
        if not received:
            raise PhaseError(PHASE_DOWNLOAD, f"no data received from {candidate.host}")
        transferred = received if account_bytes else None
        return ThroughputReading(raw=raw, bytes_transferred=transferred)

    def upload(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        self._target(candidate)
        try:
            raw = self.client.upload()
        except PROVIDER_ERRORS as exc:
            raise PhaseError(PHASE_UPLOAD, str(exc)) from exc
        sent = self.client.results.bytes_sent
        if not sent:
            raise PhaseError(PHASE_UPLOAD, f"no data sent to {candidate.host}")
        transferred = sent if account_bytes else None
        return ThroughputReading(raw=raw, bytes_transferred=transferred)

    def _target(self, candidate: Candidate) -> None:
        # download()/upload() read their server from the best-server cache,
        # which would otherwise be filled by probing the closest servers.
        self.client._best = _server_from_candidate(candidate)  # pylint: disable=protected-access


def _candidate_from_server(server: Dict[str, Any], distance: float) -> Candidate:
    return Candidate(
        server_id=str(server.get("id", "")),
        name=server.get("name", ""),
        country=server.get("country", ""),
        lat=str(server.get("lat", "")),
        lon=str(server.get("lon", "")),
        host=server.get("host", ""),
        url=server.get("url", ""),
        distance=float(server.get("d", distance)),
        sponsor=server.get("sponsor"),
    )


def _server_from_candidate(candidate: Candidate) -> Dict[str, Any]:
    return {
        "id": candidate.server_id,
        "name": candidate.name,
        "country": candidate.country,
        "lat": candidate.lat,
        "lon": candidate.lon,
        "host": candidate.host,
        "url": candidate.url,
        "sponsor": candidate.sponsor or "",
        "d": candidate.distance,
    }
