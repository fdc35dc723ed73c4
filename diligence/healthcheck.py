"""Backend health checks — ping each API before starting a run."""

import asyncio
import logging

from diligence.backend import BackendRegistry
from diligence.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_SYSTEM = "You are a connectivity check."
_PING_PROMPT = "Reply with the word OK only."
_PING_MAX_TOKENS = 16
_TIMEOUT_SEC = 15.0


async def _check_one(provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single backend. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(
            provider.generate(_PING_SYSTEM, _PING_PROMPT, max_tokens=_PING_MAX_TOKENS, timeout_sec=_TIMEOUT_SEC),
            timeout=_TIMEOUT_SEC,
        )
        return provider.name(), True, ""
    except TimeoutError:
        return provider.name(), False, f"No reply within {_TIMEOUT_SEC}s"
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", provider.name(), exc)
        return provider.name(), False, str(exc)


async def run_health_checks(registry: BackendRegistry) -> dict[str, tuple[bool, str]]:
    """Ping all registered backends in parallel.

    Returns:
        Dict mapping backend name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(p) for p in registry))
    return {name: (ok, err) for name, ok, err in results}
