"""Concurrent fan-out of one instruction to several backends, joined on a barrier."""

import asyncio
import logging

from diligence.backend import BackendRegistry, invoke, render_instruction
from diligence.errors import InputError
from diligence.models import BackendDescriptor, RawBackendResult
from diligence.providers.base import AIProvider

logger = logging.getLogger(__name__)

_RETRY_TIMEOUT_FACTOR = 1.5


async def _call_backend(
    provider: AIProvider,
    descriptor: BackendDescriptor,
    instruction_template: str,
    input_text: str,
    max_tokens: int,
    timeout_sec: float,
    retry_on_timeout: bool,
    fields: dict[str, object],
) -> RawBackendResult:
    """Call a single backend, optionally retrying once on timeout with 1.5x the timeout."""
    result = await invoke(
        provider, descriptor, instruction_template, input_text,
        max_tokens=max_tokens, timeout_sec=timeout_sec, **fields,
    )
    if result.ok or result.error_kind != "timeout" or not retry_on_timeout:
        return result

    retry_timeout = timeout_sec * _RETRY_TIMEOUT_FACTOR
    logger.warning("Backend %s timed out, retrying with %.0fs (1.5x)", descriptor.name, retry_timeout)
    retried = await invoke(
        provider, descriptor, instruction_template, input_text,
        max_tokens=max_tokens, timeout_sec=retry_timeout, **fields,
    )
    retried.duration_sec += result.duration_sec
    return retried


async def dispatch(
    descriptors: list[BackendDescriptor],
    registry: BackendRegistry,
    instruction_template: str,
    input_text: str,
    *,
    max_tokens: int,
    timeout_sec: float,
    retry_on_timeout: bool = False,
    **fields: object,
) -> list[RawBackendResult]:
    """Invoke every descriptor concurrently and return one result per descriptor.

    Results keep descriptor order. A failing backend never cancels its
    siblings; cancelling the caller cancels every in-flight call before this
    returns. Unknown backends are rejected before anything is sent.

    Raises:
        InputError: If no descriptors are given or one is not registered.
    """
    if not descriptors:
        raise InputError("At least one backend is required")
    missing = [d.name for d in descriptors if d.name not in registry]
    if missing:
        raise InputError(f"Backends not available: {', '.join(missing)}")
    providers = [registry.get(d.name) for d in descriptors]
    # Template errors surface here as KeyError instead of inside the task group.
    for descriptor in descriptors:
        render_instruction(instruction_template, descriptor, **fields)

    logger.info("Dispatching to %d backends: %s", len(descriptors), ", ".join(d.name for d in descriptors))

    async with asyncio.TaskGroup() as group:
        tasks = [
            group.create_task(
                _call_backend(
                    provider, descriptor, instruction_template, input_text,
                    max_tokens, timeout_sec, retry_on_timeout, fields,
                ),
                name=f"backend-{descriptor.name}",
            )
            for provider, descriptor in zip(providers, descriptors)
        ]

    results = [task.result() for task in tasks]
    succeeded = sum(1 for r in results if r.ok)
    logger.info("Dispatch complete: %d/%d backends succeeded", succeeded, len(results))
    return results
