"""Finding normalization and severity/confidence merge."""

import logging
from collections.abc import Iterable
from typing import Any

from diligence.extraction import AnalysisPayload, as_text, clamp_unit
from diligence.models import BackendAnalysis, NormalizedFinding, Severity

logger = logging.getLogger(__name__)

SEVERITY_RANK: dict[str, int] = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
    "unknown": 4,
}


def coerce_severity(value: Any) -> Severity:
    label = as_text(value).lower()
    if label in SEVERITY_RANK:
        return label  # type: ignore[return-value]
    return "unknown"


def normalize_findings(payload: AnalysisPayload, backend: str) -> list[NormalizedFinding]:
    """Convert raw finding objects to NormalizedFinding, stamped with ``backend``.

    The backend's own attribution field is ignored. Unknown severities rank
    below "low" instead of being dropped.
    """
    normalized: list[NormalizedFinding] = []
    for index, item in enumerate(payload.findings):
        if isinstance(item, str):
            item = {"title": item}
        if not isinstance(item, dict):
            logger.warning("Backend %s finding #%d is not an object (%s), skipping",
                           backend, index, type(item).__name__)
            continue
        normalized.append(
            NormalizedFinding(
                title=as_text(item.get("title")),
                severity=coerce_severity(item.get("severity")),
                description=as_text(item.get("description")),
                recommendation=as_text(item.get("recommendation")),
                confidence=clamp_unit(item.get("confidence"), 0.0),
                backend=backend,
            )
        )
    return normalized


def _merge_key(finding: NormalizedFinding) -> tuple[int, float]:
    return SEVERITY_RANK.get(finding.severity, SEVERITY_RANK["unknown"]), -finding.confidence


def merge_findings(findings: Iterable[NormalizedFinding]) -> list[NormalizedFinding]:
    """Order by severity rank, then confidence descending.

    ``sorted`` is stable, so equal keys keep arrival order (backend order,
    then order within a backend), and re-merging a merged list is a no-op.
    """
    return sorted(findings, key=_merge_key)


def merge_backend_findings(results: Iterable[BackendAnalysis]) -> list[NormalizedFinding]:
    """Merge findings of successful backends only, in backend order."""
    collected: list[NormalizedFinding] = []
    for result in results:
        if result.ok:
            collected.extend(result.findings)
    return merge_findings(collected)
