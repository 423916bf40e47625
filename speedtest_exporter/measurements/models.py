"""Shared dataclasses for a measurement cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..metrics import Sample


@dataclass(frozen=True)
class Identity:
    """Where the probe runs from, as reported by the provider."""

    lat: str
    lon: str
    ip: str
    isp: str


@dataclass
class Candidate:
    """A measurement server. ``url`` may be repaired after selection."""

    server_id: str
    name: str
    country: str
    lat: str
    lon: str
    host: str
    url: str
    distance: float
    sponsor: Optional[str] = None

    @property
    def numeric_id(self) -> Optional[int]:
        try:
            return int(self.server_id)
        except (TypeError, ValueError):
            return None

    @property
    def distance_label(self) -> str:
        return f"{self.distance:f}"


@dataclass(frozen=True)
class ThroughputReading:
    raw: float
    bytes_transferred: Optional[int] = None


@dataclass(frozen=True)
class PhaseResult:
    phase: str
    success: bool
    value: Optional[float] = None


@dataclass
class Snapshot:
    test_uuid: str
    success: bool
    duration_seconds: float
    server: Optional[Candidate] = None
    phases: Tuple[PhaseResult, ...] = ()
    samples: List[Sample] = field(default_factory=list)

    def phase(self, name: str) -> Optional[PhaseResult]:
        for result in self.phases:
            if result.phase == name:
                return result
        return None

    def samples_for(self, metric_name: str) -> List[Sample]:
        return [sample for sample in self.samples if sample.descriptor.name == metric_name]
