"""Side-by-side comparison: one question to every backend, agreement on confidence."""

import logging
import time

from config.config_loader import CompareConfig, PromptsConfig
from diligence.backend import BackendRegistry
from diligence.consensus import population_stats
from diligence.dispatch import dispatch
from diligence.errors import InputError
from diligence.extraction import DEFAULT_ANSWER_CONFIDENCE, Malformed, extract_answer
from diligence.models import (
    BackendDescriptor,
    BackendStatus,
    ComparisonMetrics,
    ComparisonResult,
    ModelAnswer,
    RawBackendResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = (
    "General M&A context. Analyze based on industry best practices and standard deal structures."
)


def _to_answer(raw: RawBackendResult) -> ModelAnswer:
    if not raw.ok:
        return ModelAnswer(raw.backend, BackendStatus.ERROR, raw.duration_sec, error=raw.error)
    payload = extract_answer(raw.text)
    if isinstance(payload, Malformed):
        # Plain-prose answers are still worth showing side by side.
        logger.debug("Backend %s answered without JSON: %s", raw.backend, payload.reason)
        return ModelAnswer(
            raw.backend, BackendStatus.SUCCESS, raw.duration_sec,
            response=(raw.text or "").strip(),
            confidence=DEFAULT_ANSWER_CONFIDENCE,
        )
    return ModelAnswer(
        raw.backend, BackendStatus.SUCCESS, raw.duration_sec,
        response=payload.response,
        key_points=payload.key_points,
        confidence=payload.confidence,
    )


def comparison_metrics(answers: list[ModelAnswer]) -> ComparisonMetrics:
    valid = [a for a in answers if a.status is BackendStatus.SUCCESS and a.confidence > 0]
    mean, stddev = population_stats([a.confidence for a in valid])
    fastest = min(valid, key=lambda a: a.duration_sec).backend if valid else None
    most_confident = max(valid, key=lambda a: a.confidence).backend if valid else None
    return ComparisonMetrics(
        models_responded=len(valid),
        average_confidence=round(mean, 2),
        agreement_score=round(1 - stddev, 2),
        fastest_model=fastest,
        highest_confidence=most_confident,
    )


async def run_comparison(
    prompt: str,
    backends: list[BackendDescriptor],
    registry: BackendRegistry,
    prompts: PromptsConfig,
    config: CompareConfig,
    *,
    context: str = "",
    timeout_sec: float = 120.0,
    retry_on_timeout: bool = False,
) -> ComparisonResult:
    """Ask every backend the same question concurrently and compare the answers.

    Raises:
        InputError: If the prompt is empty or a backend is unknown.
    """
    if not prompt or not prompt.strip():
        raise InputError("Comparison prompt is required")

    start = time.monotonic()
    compare_input = prompts.compare_input.format(
        context=(context.strip() or DEFAULT_CONTEXT)[:config.max_context_chars],
        prompt=prompt.strip(),
    )
    raw_results = await dispatch(
        backends, registry, prompts.compare, compare_input,
        max_tokens=config.max_tokens,
        timeout_sec=timeout_sec,
        retry_on_timeout=retry_on_timeout,
    )
    answers = [_to_answer(raw) for raw in raw_results]
    metrics = comparison_metrics(answers)
    logger.info(
        "Comparison complete: %d/%d answered, agreement %.2f",
        metrics.models_responded, len(answers), metrics.agreement_score,
    )
    return ComparisonResult(
        prompt=prompt.strip(),
        answers=answers,
        metrics=metrics,
        duration_sec=time.monotonic() - start,
    )
