"""Unit tests for diligence/healthcheck.py — no real API calls."""

import asyncio
from unittest.mock import AsyncMock

import diligence.healthcheck as hc
from diligence.backend import BackendRegistry
from diligence.healthcheck import run_health_checks
from diligence.providers.base import ProviderError
from tests.conftest import MockProvider, response


async def test_all_providers_pass():
    """All providers succeed -> all marked ok, no errors."""
    registry = BackendRegistry([MockProvider("claude", "OK"), MockProvider("gemini", "OK")])

    results = await run_health_checks(registry)

    assert results["claude"] == (True, "")
    assert results["gemini"] == (True, "")


async def test_ping_uses_small_token_budget():
    provider = MockProvider("claude", "OK")
    await run_health_checks(BackendRegistry([provider]))
    assert provider.generate.call_args.kwargs["max_tokens"] == 16


async def test_one_provider_fails():
    """A provider that raises returns ok=False with the error message."""
    claude = MockProvider("claude")
    claude.generate = AsyncMock(return_value=response("claude", "OK"))
    openai = MockProvider("openai")
    openai.generate = AsyncMock(side_effect=ProviderError("openai", "401 Unauthorized"))

    results = await run_health_checks(BackendRegistry([claude, openai]))

    assert results["claude"] == (True, "")
    ok, err = results["openai"]
    assert ok is False
    assert "401" in err


async def test_all_providers_fail():
    providers = [MockProvider("openai"), MockProvider("gemini")]
    for p in providers:
        p.generate = AsyncMock(side_effect=Exception(f"{p.name()} down"))

    results = await run_health_checks(BackendRegistry(providers))

    for p in providers:
        ok, err = results[p.name()]
        assert ok is False
        assert p.name() in err


async def test_empty_registry():
    assert await run_health_checks(BackendRegistry()) == {}


async def test_timeout_counts_as_failure(monkeypatch):
    """A provider that hangs past the timeout is marked as failed."""
    slow = MockProvider("slow")

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    slow.generate = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(BackendRegistry([slow]))

    ok, err = results["slow"]
    assert ok is False
    assert "No reply" in err
