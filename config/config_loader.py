"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


class ConfigError(ValueError):
    """Raised when settings.yaml is present but holds invalid values."""


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PanelMember:
    backend: str
    role: str


@dataclass
class PromptsConfig:
    analysis: str
    analysis_input: str
    debate_turn: str
    debate_input: str
    judge: str
    judge_input: str
    compare: str
    compare_input: str


@dataclass
class DefaultsConfig:
    output_dir: Path
    timeout_sec: float = 120.0
    retry_on_timeout: bool = False
    max_document_chars: int = 50_000


@dataclass
class AnalysisConfig:
    panel: list[PanelMember] = field(default_factory=list)
    max_tokens: int = 4096


@dataclass
class DebateConfig:
    for_backend: str
    against_backend: str
    judge_backend: str
    for_role: str = ""
    against_role: str = ""
    judge_role: str = ""
    rounds: int = 2
    max_rounds: int = 3
    max_tokens: int = 2048
    max_context_chars: int = 30_000
    judge_context_chars: int = 15_000


@dataclass
class CompareConfig:
    max_tokens: int = 1024
    max_context_chars: int = 10_000


@dataclass
class ConsensusConfig:
    # Design constants: a stddev of ~33 drives the score to 0 with the x3 multiplier.
    stddev_multiplier: float = 3.0
    strong_below: float = 10.0
    moderate_below: float = 20.0
    weak_below: float = 30.0
    treat_zero_score_as_failure: bool = False


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    analysis: AnalysisConfig
    debate: DebateConfig
    compare: CompareConfig = field(default_factory=CompareConfig)
    consensus: ConsensusConfig = field(default_factory=ConsensusConfig)
    available_providers: set[str] = field(default_factory=set)


def _load_consensus(raw: dict) -> ConsensusConfig:
    consensus = ConsensusConfig(
        stddev_multiplier=float(raw.get("stddev_multiplier", 3.0)),
        strong_below=float(raw.get("strong_below", 10.0)),
        moderate_below=float(raw.get("moderate_below", 20.0)),
        weak_below=float(raw.get("weak_below", 30.0)),
        treat_zero_score_as_failure=bool(raw.get("treat_zero_score_as_failure", False)),
    )
    if not consensus.strong_below < consensus.moderate_below < consensus.weak_below:
        raise ConfigError(
            "consensus thresholds must be strictly increasing: "
            f"{consensus.strong_below}, {consensus.moderate_below}, {consensus.weak_below}"
        )
    if consensus.stddev_multiplier <= 0:
        raise ConfigError(f"consensus.stddev_multiplier must be positive, got {consensus.stddev_multiplier}")
    return consensus


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ConfigError on
    invalid values. Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        output_dir=Path(defaults_raw["output_dir"]),
        timeout_sec=float(defaults_raw.get("timeout_sec", 120)),
        retry_on_timeout=bool(defaults_raw.get("retry_on_timeout", False)),
        max_document_chars=int(defaults_raw.get("max_document_chars", 50_000)),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        analysis=prompts_raw["analysis"],
        analysis_input=prompts_raw["analysis_input"],
        debate_turn=prompts_raw["debate_turn"],
        debate_input=prompts_raw["debate_input"],
        judge=prompts_raw["judge"],
        judge_input=prompts_raw["judge_input"],
        compare=prompts_raw["compare"],
        compare_input=prompts_raw["compare_input"],
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    analysis_raw = raw.get("analysis", {})
    analysis = AnalysisConfig(
        panel=[
            PanelMember(backend=str(m["backend"]), role=str(m.get("role", "")).strip())
            for m in analysis_raw.get("panel", [])
        ],
        max_tokens=int(analysis_raw.get("max_tokens", 4096)),
    )

    debate_raw = raw["debate"]
    debate = DebateConfig(
        for_backend=str(debate_raw["for_backend"]),
        against_backend=str(debate_raw["against_backend"]),
        judge_backend=str(debate_raw["judge_backend"]),
        for_role=str(debate_raw.get("for_role", "")),
        against_role=str(debate_raw.get("against_role", "")),
        judge_role=str(debate_raw.get("judge_role", "")),
        rounds=int(debate_raw.get("rounds", 2)),
        max_rounds=int(debate_raw.get("max_rounds", 3)),
        max_tokens=int(debate_raw.get("max_tokens", 2048)),
        max_context_chars=int(debate_raw.get("max_context_chars", 30_000)),
        judge_context_chars=int(debate_raw.get("judge_context_chars", 15_000)),
    )
    if debate.max_rounds < 1:
        raise ConfigError(f"debate.max_rounds must be at least 1, got {debate.max_rounds}")

    compare_raw = raw.get("compare", {})
    compare = CompareConfig(
        max_tokens=int(compare_raw.get("max_tokens", 1024)),
        max_context_chars=int(compare_raw.get("max_context_chars", 10_000)),
    )

    for member in analysis.panel:
        if member.backend not in models:
            raise ConfigError(f"analysis.panel references unknown backend: {member.backend}")
    for name in (debate.for_backend, debate.against_backend, debate.judge_backend):
        if name not in models:
            raise ConfigError(f"debate references unknown backend: {name}")

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        analysis=analysis,
        debate=debate,
        compare=compare,
        consensus=_load_consensus(raw.get("consensus", {})),
        available_providers=available_providers,
    )
