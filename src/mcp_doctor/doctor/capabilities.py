"""Detect which optional protocol features a target server supports."""

from __future__ import annotations

import logging

from mcp_doctor.connection.base import McpClientPort
from mcp_doctor.doctor.base import error_text, listing_items
from mcp_doctor.doctor.deadline import EXPIRED, run_with_deadline
from mcp_doctor.models import Capability

logger = logging.getLogger(__name__)

# capability -> (client method, list field in the response)
_LISTINGS: dict[Capability, tuple[str, str]] = {
    Capability.TOOLS: ("list_tools", "tools"),
    Capability.RESOURCES: ("list_resources", "resources"),
    Capability.PROMPTS: ("list_prompts", "prompts"),
}

_DEFAULT_PROBE_TIMEOUT_MS = 10_000


async def detect_capabilities(
    client: McpClientPort,
    *,
    timeout_ms: int = _DEFAULT_PROBE_TIMEOUT_MS,
) -> frozenset[Capability]:
    """Return the capabilities the server actually serves.

    Each feature is probed by calling its listing method. A well-formed
    listing means present; an error, a timeout, or a malformed payload means
    absent. Never raises.
    """
    detected: set[Capability] = set()

    for capability, (method, field) in _LISTINGS.items():
        try:
            payload = await run_with_deadline(getattr(client, method)(), timeout_ms)
        except Exception as exc:
            logger.debug("%s not supported: %s", capability, error_text(exc))
            continue

        if payload is EXPIRED:
            logger.debug("%s listing timed out after %dms", capability, timeout_ms)
        elif listing_items(payload, field) is None:
            logger.debug("%s listing returned a malformed payload", capability)
        else:
            detected.add(capability)

    logger.debug("Detected capabilities: %s", sorted(detected) or "none")
    return frozenset(detected)
