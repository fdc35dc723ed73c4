"""Shared pytest fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AnalysisConfig,
    AppConfig,
    CompareConfig,
    ConsensusConfig,
    DebateConfig,
    DefaultsConfig,
    ModelConfig,
    PanelMember,
    PromptsConfig,
)
from diligence.backend import BackendRegistry
from diligence.models import BackendDescriptor, ModelResponse
from diligence.providers.base import AIProvider


def analysis_reply(risk_score=None, findings=None, summary="Summary.", wrap=True) -> str:
    """A backend reply holding an analysis payload, wrapped in prose and a fence."""
    payload: dict = {"findings": findings or [], "executive_summary": summary}
    if risk_score is not None:
        payload["risk_score"] = risk_score
    body = json.dumps(payload)
    return f"Here is my analysis:\n```json\n{body}\n```\nLet me know." if wrap else body


def argument_reply(argument: str, key_points=(), evidence=()) -> str:
    return json.dumps({
        "argument": argument,
        "key_points": list(key_points),
        "evidence_cited": list(evidence),
    })


def verdict_reply(winner="FOR", confidence=0.8, reasoning="FOR cited the clause.") -> str:
    return json.dumps({
        "winner": winner,
        "confidence": confidence,
        "reasoning": reasoning,
        "key_factors": ["Evidence quality"],
        "recommendation": "Proceed.",
    })


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="anthropic",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        analysis="You are a {role}. Reply with JSON {{\"risk_score\": 0-100}}.",
        analysis_input="Analyze this M&A document:\n\n{text}",
        debate_turn="You are a {role}. Argue {stance}. Round {round} of {rounds}.",
        debate_input="Topic: {topic}\nContext: {context}\nDebate so far:\n{transcript}",
        judge="You are a {role}. Pick a winner.",
        judge_input="TOPIC: {topic}\nCONTEXT: {context}\nTRANSCRIPT:\n{transcript}",
        compare="You are an M&A expert. Reply with JSON.",
        compare_input="Context: {context}\n\nQuestion: {prompt}",
    )


@pytest.fixture
def sample_debate_config() -> DebateConfig:
    return DebateConfig(
        for_backend="claude",
        against_backend="openai",
        judge_backend="gemini",
        for_role="partner arguing for",
        against_role="partner arguing against",
        judge_role="neutral arbitrator",
        rounds=2,
        max_rounds=3,
    )


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_prompts_config: PromptsConfig,
    sample_debate_config: DebateConfig,
) -> AppConfig:
    models = {
        name: ModelConfig(
            name=name,
            sdk=sdk,
            model=f"{name}-model",
            api_key_env=f"{name.upper()}_KEY",
            timeout_sec=60,
            max_tokens=4096,
        )
        for name, sdk in [("claude", "anthropic"), ("openai", "openai"), ("gemini", "gemini")]
    }
    return AppConfig(
        defaults=DefaultsConfig(output_dir=tmp_path / "output", timeout_sec=5.0),
        models=models,
        prompts=sample_prompts_config,
        analysis=AnalysisConfig(
            panel=[
                PanelMember("claude", "legal analyst"),
                PanelMember("openai", "financial analyst"),
                PanelMember("gemini", "research analyst"),
            ],
        ),
        debate=sample_debate_config,
        compare=CompareConfig(),
        consensus=ConsensusConfig(),
        available_providers={"claude", "openai", "gemini"},
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, system, prompt, max_tokens=None, timeout_sec=None) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, "mock-model", self._response_content, 0.1, 10)


def response(provider: str, content: str) -> ModelResponse:
    return ModelResponse(provider=provider, model="mock-model", content=content, latency_sec=0.1, token_count=5)


@pytest.fixture
def descriptors() -> list[BackendDescriptor]:
    return [
        BackendDescriptor("claude", "legal analyst"),
        BackendDescriptor("openai", "financial analyst"),
        BackendDescriptor("gemini", "research analyst"),
    ]


@pytest.fixture
def three_providers() -> dict[str, MockProvider]:
    return {
        "claude": MockProvider("claude", analysis_reply(70)),
        "openai": MockProvider("openai", analysis_reply(72)),
        "gemini": MockProvider("gemini", analysis_reply(68)),
    }


@pytest.fixture
def registry(three_providers: dict[str, MockProvider]) -> BackendRegistry:
    return BackendRegistry(three_providers.values())
