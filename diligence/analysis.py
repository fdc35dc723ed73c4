"""Multi-backend document analysis: fan out, extract, normalize, aggregate, merge."""

import logging
import time

from config.config_loader import AppConfig, ConsensusConfig, PromptsConfig
from diligence.backend import BackendRegistry
from diligence.consensus import compute_consensus
from diligence.dispatch import dispatch
from diligence.errors import InputError
from diligence.extraction import Malformed, extract_analysis
from diligence.findings import merge_backend_findings, normalize_findings
from diligence.models import (
    AnalysisRequest,
    AnalysisResult,
    BackendAnalysis,
    BackendDescriptor,
    BackendStatus,
    RawBackendResult,
)

logger = logging.getLogger(__name__)


def panel_descriptors(config: AppConfig) -> list[BackendDescriptor]:
    """Analysis panel from settings, in configured order."""
    return [BackendDescriptor(name=m.backend, role=m.role) for m in config.analysis.panel]


def _summarize(descriptor: BackendDescriptor, raw: RawBackendResult) -> BackendAnalysis:
    if not raw.ok:
        return BackendAnalysis(
            backend=descriptor.name,
            role=descriptor.role,
            status=BackendStatus.ERROR,
            duration_sec=raw.duration_sec,
            error=raw.error,
            error_kind=raw.error_kind,
        )

    payload = extract_analysis(raw.text)
    if isinstance(payload, Malformed):
        logger.warning("Backend %s returned malformed output: %s", descriptor.name, payload.reason)
        return BackendAnalysis(
            backend=descriptor.name,
            role=descriptor.role,
            status=BackendStatus.ERROR,
            duration_sec=raw.duration_sec,
            error=payload.reason,
            error_kind="malformed",
        )

    findings = normalize_findings(payload, descriptor.name)
    logger.info(
        "Backend %s: risk score %.0f, %d findings in %.2fs",
        descriptor.name, payload.risk_score, len(findings), raw.duration_sec,
    )
    return BackendAnalysis(
        backend=descriptor.name,
        role=descriptor.role,
        status=BackendStatus.SUCCESS,
        duration_sec=raw.duration_sec,
        risk_score=payload.risk_score,
        findings=findings,
        executive_summary=payload.executive_summary,
    )


async def run_analysis(
    request: AnalysisRequest,
    registry: BackendRegistry,
    prompts: PromptsConfig,
    *,
    max_tokens: int = 4096,
    default_timeout_sec: float = 120.0,
    retry_on_timeout: bool = False,
    consensus_config: ConsensusConfig | None = None,
) -> AnalysisResult:
    """Analyze one document with every backend in the request.

    Per-backend failures (transport, timeout, malformed output) are recorded
    in the per-backend summary and never fail the request; if every backend
    fails the consensus is the zero/none result and no findings are merged.

    Raises:
        InputError: If the text is empty or the backends are missing/unknown.
            Raised before any backend is invoked.
    """
    if not request.text or not request.text.strip():
        raise InputError("No document text to analyze")
    if not request.backends:
        raise InputError("At least one backend is required")

    start = time.monotonic()
    timeout = request.timeout_sec or default_timeout_sec

    raw_results = await dispatch(
        request.backends,
        registry,
        prompts.analysis,
        prompts.analysis_input.format(text=request.text),
        max_tokens=max_tokens,
        timeout_sec=timeout,
        retry_on_timeout=retry_on_timeout,
    )

    summaries = [_summarize(d, raw) for d, raw in zip(request.backends, raw_results)]
    consensus = compute_consensus(
        ((s.risk_score, s.ok) for s in summaries),
        consensus_config,
    )
    findings = merge_backend_findings(summaries)

    duration = time.monotonic() - start
    logger.info(
        "Analysis complete: %d/%d backends usable, %d findings, %.1fs",
        consensus.count, len(summaries), len(findings), duration,
    )
    return AnalysisResult(
        backends=summaries,
        consensus=consensus,
        findings=findings,
        duration_sec=duration,
    )
