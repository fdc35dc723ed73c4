"""Backend capability: one bounded, never-raising call to a reasoning backend.

The registry is built once at process start and handed to every entry
point; nothing in the package holds a module-level client.
"""

import asyncio
import logging
import time
from collections.abc import Iterable, Iterator

from config.config_loader import AppConfig
from diligence.models import BackendDescriptor, BackendStatus, RawBackendResult
from diligence.providers.anthropic import AnthropicProvider
from diligence.providers.base import AIProvider, ProviderError
from diligence.providers.gemini import GeminiProvider
from diligence.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


class BackendRegistry:
    """Name -> provider mapping shared by the dispatcher and the debate."""

    def __init__(self, providers: Iterable[AIProvider] = ()) -> None:
        self._providers: dict[str, AIProvider] = {}
        for provider in providers:
            self.register(provider)

    @classmethod
    def from_config(cls, config: AppConfig) -> "BackendRegistry":
        """Build every provider that has an API key. Failures are logged and skipped."""
        registry = cls()
        for name in sorted(config.available_providers):
            model_cfg = config.models[name]
            provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
            if provider_cls is None:
                logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
                continue
            try:
                registry.register(provider_cls(model_cfg))
            except Exception as exc:
                logger.warning("Failed to instantiate provider '%s': %s", name, exc)
        return registry

    def register(self, provider: AIProvider) -> None:
        self._providers[provider.name()] = provider

    def get(self, name: str) -> AIProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"No backend registered under '{name}'") from None

    def names(self) -> list[str]:
        return list(self._providers)

    def only(self, names: Iterable[str]) -> "BackendRegistry":
        """Return a registry restricted to the given names (health-check filtering)."""
        keep = set(names)
        return BackendRegistry(p for n, p in self._providers.items() if n in keep)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[AIProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)


def render_instruction(template: str, descriptor: BackendDescriptor, **fields: object) -> str:
    return template.format(role=descriptor.role, **fields)


async def invoke(
    provider: AIProvider,
    descriptor: BackendDescriptor,
    instruction_template: str,
    input_text: str,
    *,
    max_tokens: int,
    timeout_sec: float,
    **fields: object,
) -> RawBackendResult:
    """Call one backend and convert every failure mode into a failed result.

    Never raises for network errors, remote errors, timeouts or empty replies.
    Cancellation of the caller is not a failure and propagates.
    """
    system = render_instruction(instruction_template, descriptor, **fields)
    start = time.monotonic()
    try:
        response = await asyncio.wait_for(
            provider.generate(system, input_text, max_tokens=max_tokens, timeout_sec=timeout_sec),
            timeout=timeout_sec,
        )
    except TimeoutError:
        return _failed(descriptor, start, f"Request timed out after {timeout_sec}s", "timeout")
    except ProviderError as exc:
        return _failed(descriptor, start, str(exc), "timeout" if exc.timed_out else "transport")
    except Exception as exc:
        return _failed(descriptor, start, f"Unexpected error: {exc}", "transport")

    elapsed = time.monotonic() - start
    if not response.content or not response.content.strip():
        return _failed(descriptor, start, "Empty response content", "transport")

    logger.debug("Backend %s answered in %.2fs (%d chars)", descriptor.name, elapsed, len(response.content))
    return RawBackendResult(
        backend=descriptor.name,
        status=BackendStatus.SUCCESS,
        duration_sec=elapsed,
        text=response.content,
    )


def _failed(descriptor: BackendDescriptor, start: float, reason: str, kind: str) -> RawBackendResult:
    logger.warning("Backend %s failed: %s", descriptor.name, reason)
    return RawBackendResult(
        backend=descriptor.name,
        status=BackendStatus.ERROR,
        duration_sec=time.monotonic() - start,
        error=reason,
        error_kind=kind,  # type: ignore[arg-type]
    )
