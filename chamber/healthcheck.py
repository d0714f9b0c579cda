"""Backend health checks: ping each API before starting a deliberation."""

import asyncio
import logging

from chamber.models import ContentPart, GenerationRequest
from chamber.providers.base import LanguageModelClient

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(name: str, client: LanguageModelClient) -> tuple[str, bool, str]:
    """Ping a single backend. Returns (name, ok, error_message)."""
    request = GenerationRequest(
        model_id=client.model_string(),
        content_parts=(ContentPart.from_text(_PING_PROMPT),),
    )
    try:
        await asyncio.wait_for(client.generate(request), timeout=_TIMEOUT_SEC)
        return name, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__


async def run_health_checks(
    clients: dict[str, LanguageModelClient],
) -> dict[str, tuple[bool, str]]:
    """Ping all backends in parallel.

    Returns:
        Dict mapping backend name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, c) for n, c in clients.items()))
    return {name: (ok, err) for name, ok, err in results}
