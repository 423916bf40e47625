"""Failures a measurement cycle can run into. None of them are fatal to the process."""

from __future__ import annotations

PHASE_LATENCY = "latency"
PHASE_DOWNLOAD = "download"
PHASE_UPLOAD = "upload"
PHASES = (PHASE_LATENCY, PHASE_DOWNLOAD, PHASE_UPLOAD)


class ProbeError(Exception):
    """Base class for measurement cycle failures."""


class IdentityFetchError(ProbeError):
    pass


class CandidateFetchError(ProbeError):
    pass


class SelectionError(ProbeError):
    pass


class PhaseError(ProbeError):
    def __init__(self, phase: str, message: str):
        super().__init__(message)
        self.phase = phase
