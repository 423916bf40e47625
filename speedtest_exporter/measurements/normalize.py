"""Throughput unit normalization."""

from __future__ import annotations

GBPS_TO_BYTES = 125_000_000
MBPS_TO_BYTES = 125_000
KBPS_TO_BYTES = 125

MBPS_FLOOR = 20
KBPS_FLOOR = 20_000
BITS_FLOOR = 20_000_000


def normalize_speed(raw_value: float) -> float:
    """Convert a raw throughput reading to bytes per second.

    Measurement backends report throughput without a unit, so the unit is
    guessed from the magnitude. This is a heuristic, not a protocol:

    ============================  ==========  ===============
    raw value                     unit        factor
    ============================  ==========  ===============
    ``0 < raw < 20``              Gbps        x 125,000,000
    ``20 <= raw < 20,000``        Mbps        x 125,000
    ``20,000 <= raw < 20e6``      Kbps        x 125
    ``raw >= 20e6``               bits/s      / 8
    ``raw <= 0``                  bits/s      / 8
    ============================  ==========  ===============
    """
    if 0 < raw_value < MBPS_FLOOR:
        return raw_value * GBPS_TO_BYTES
    if MBPS_FLOOR <= raw_value < KBPS_FLOOR:
        return raw_value * MBPS_TO_BYTES
    if KBPS_FLOOR <= raw_value < BITS_FLOOR:
        return raw_value * KBPS_TO_BYTES
    # very large readings are bits/s; so are zero and negative ones
    return raw_value / 8
