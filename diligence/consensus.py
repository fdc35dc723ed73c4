"""Agreement metrics over the backends that returned a usable risk score."""

import logging
import math
from collections.abc import Iterable

from config.config_loader import ConsensusConfig
from diligence.models import AgreementLevel, ConsensusMetrics

logger = logging.getLogger(__name__)

INTERPRETATIONS: dict[AgreementLevel, str] = {
    AgreementLevel.STRONG: "All models agree on risk assessment. High confidence.",
    AgreementLevel.MODERATE: "Models mostly agree. Some variance in specific findings.",
    AgreementLevel.WEAK: "Significant disagreement. Recommend human review of divergent findings.",
    AgreementLevel.NONE: "Models strongly disagree. Manual analysis recommended.",
}


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def population_stats(values: list[float]) -> tuple[float, float]:
    """Return (mean, population standard deviation); both 0 for no values."""
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def classify(stddev: float, config: ConsensusConfig) -> AgreementLevel:
    if stddev < config.strong_below:
        return AgreementLevel.STRONG
    if stddev < config.moderate_below:
        return AgreementLevel.MODERATE
    if stddev < config.weak_below:
        return AgreementLevel.WEAK
    return AgreementLevel.NONE


def _metrics(mean: float, stddev: float, score: int, level: AgreementLevel, count: int) -> ConsensusMetrics:
    return ConsensusMetrics(
        mean=mean,
        stddev=stddev,
        consensus_score=score,
        agreement_level=level,
        count=count,
        interpretation=INTERPRETATIONS[level],
        human_review_recommended=level in (AgreementLevel.WEAK, AgreementLevel.NONE),
    )


def compute_consensus(
    outcomes: Iterable[tuple[float | None, bool]],
    config: ConsensusConfig | None = None,
) -> ConsensusMetrics:
    """Compute consensus metrics from ``(score, succeeded)`` pairs, one per backend.

    Only successful backends with a score count. A score of 0 is a real
    assessment unless ``treat_zero_score_as_failure`` restores the legacy
    sentinel behavior.
    """
    config = config or ConsensusConfig()
    scores: list[float] = []
    for score, succeeded in outcomes:
        if not succeeded or score is None:
            continue
        if config.treat_zero_score_as_failure and score == 0:
            logger.debug("Dropping zero score under legacy sentinel rule")
            continue
        scores.append(float(score))

    if not scores:
        return _metrics(0.0, 0.0, 0, AgreementLevel.NONE, 0)

    mean, stddev = population_stats(scores)
    consensus_score = max(0, round_half_up(100 - config.stddev_multiplier * stddev))
    level = classify(stddev, config)
    logger.info(
        "Consensus over %d backends: mean=%.1f stddev=%.2f score=%d (%s)",
        len(scores), mean, stddev, consensus_score, level.value,
    )
    return _metrics(mean, stddev, consensus_score, level, len(scores))
