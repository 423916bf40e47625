"""Choosing the server a cycle measures against."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..config import NO_SERVER_PREFERENCE
from .errors import SelectionError
from .models import Candidate

LOGGER = logging.getLogger(__name__)

MALFORMED_SCHEME = "http//"
FIXED_SCHEME = "http://"


def select_server(
    preferred_id: Optional[int],
    fallback_allowed: bool,
    candidates: Sequence[Candidate],
) -> Candidate:
    """Pick the configured server, or the closest one.

    ``candidates`` must be ordered by distance, closest first. Raises
    :class:`SelectionError` when nothing can be selected.
    """
    if preferred_id is None or preferred_id == NO_SERVER_PREFERENCE:
        if not candidates:
            raise SelectionError("server list is empty, cannot select the closest server")
        return repair_server_url(candidates[0])

    for candidate in candidates:
        if candidate.numeric_id == preferred_id:
            return repair_server_url(candidate)

    if not fallback_allowed:
        LOGGER.info("server_fallback is not enabled, failing this test")
        raise SelectionError(
            f"could not find your chosen server ID {preferred_id} in the list of available servers"
        )

    LOGGER.warning(
        "could not find your chosen server ID %d, server_fallback is enabled, falling back to the closest server",
        preferred_id,
    )
    if not candidates:
        raise SelectionError("server list is empty, cannot fall back to the closest server")
    return repair_server_url(candidates[0])


def repair_server_url(candidate: Candidate) -> Candidate:
    """Fix server URLs that arrive as ``http//host`` from the server list.

    Only that one missing colon is corrected; anything else is left alone.
    """
    if candidate.url.startswith(MALFORMED_SCHEME):
        corrected = candidate.url.replace(MALFORMED_SCHEME, FIXED_SCHEME, 1)
        LOGGER.warning("Malformed server URL detected, correcting from '%s' to '%s'", candidate.url, corrected)
        candidate.url = corrected
    return candidate
