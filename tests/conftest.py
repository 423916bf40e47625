from __future__ import annotations

from typing import List, Optional

import pytest

from speedtest_exporter.measurements.errors import (
    PHASE_DOWNLOAD,
    PHASE_LATENCY,
    PHASE_UPLOAD,
    CandidateFetchError,
    IdentityFetchError,
    PhaseError,
)
from speedtest_exporter.measurements.models import Candidate, Identity, ThroughputReading
from speedtest_exporter.measurements.provider import MeasurementProvider
from speedtest_exporter.metrics import build_registry


def make_candidate(server_id: str = "1001", distance: float = 12.5, url: Optional[str] = None, **overrides) -> Candidate:
    values = dict(
        server_id=server_id,
        name=f"Server {server_id}",
        country="Netherlands",
        lat="52.3667",
        lon="4.9000",
        host=f"speedtest{server_id}.example.net:8080",
        url=url or f"http://speedtest{server_id}.example.net:8080/speedtest/upload.php",
        distance=distance,
    )
    values.update(overrides)
    return Candidate(**values)


IDENTITY = Identity(lat="52.37", lon="4.89", ip="198.51.100.7", isp="Example ISP")


class FakeProvider(MeasurementProvider):
    """Provider with canned answers; ``fail`` names the steps that raise."""

    def __init__(
        self,
        candidates: Optional[List[Candidate]] = None,
        fail=(),
        latency: float = 0.012,
        download_raw: float = 250.0,
        upload_raw: float = 50.0,
    ):
        self.candidates = [make_candidate("1001", 1.0), make_candidate("1002", 5.0)] if candidates is None else candidates
        self.fail = set(fail)
        self.latency = latency
        self.download_raw = download_raw
        self.upload_raw = upload_raw
        self.calls: List[str] = []

    def fetch_identity(self) -> Identity:
        self.calls.append("identity")
        if "identity" in self.fail:
            raise IdentityFetchError("could not fetch user information: offline")
        return IDENTITY

    def fetch_candidates(self, identity: Identity) -> List[Candidate]:
        self.calls.append("candidates")
        if "candidates" in self.fail:
            raise CandidateFetchError("could not fetch server list: offline")
        return self.candidates

    def ping(self, candidate: Candidate) -> float:
        self.calls.append(PHASE_LATENCY)
        if PHASE_LATENCY in self.fail:
            raise PhaseError(PHASE_LATENCY, "no route to host")
        return self.latency

    def download(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        self.calls.append(PHASE_DOWNLOAD)
        if PHASE_DOWNLOAD in self.fail:
            raise PhaseError(PHASE_DOWNLOAD, "connection reset")
        return ThroughputReading(raw=self.download_raw)

    def upload(self, candidate: Candidate, account_bytes: bool = False) -> ThroughputReading:
        self.calls.append(PHASE_UPLOAD)
        if PHASE_UPLOAD in self.fail:
            raise PhaseError(PHASE_UPLOAD, "connection reset")
        return ThroughputReading(raw=self.upload_raw)


@pytest.fixture
def registry():
    return build_registry()
