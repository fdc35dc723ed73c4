"""Debate transcript formatting and the independent judging turn."""

import logging

from config.config_loader import DebateConfig, PromptsConfig
from diligence.backend import invoke
from diligence.extraction import Malformed, extract_verdict
from diligence.models import BackendDescriptor, DebateFailure, DebatePhase, DebateState, DebateTurn, Verdict
from diligence.providers.base import AIProvider

logger = logging.getLogger(__name__)

_EMPTY_TRANSCRIPT = "(No arguments have been made yet. You open the debate.)"


def format_transcript(turns: list[DebateTurn]) -> str:
    """Format every committed turn, oldest first, for the next prompt."""
    if not turns:
        return _EMPTY_TRANSCRIPT
    parts: list[str] = []
    for turn in turns:
        parts.append(f"### Round {turn.round}: {turn.side.upper()} ({turn.backend})")
        parts.append(turn.argument)
        if turn.key_points:
            parts.append("Key points: " + "; ".join(turn.key_points))
        if turn.evidence_cited:
            parts.append("Evidence cited: " + "; ".join(turn.evidence_cited))
    return "\n\n".join(parts)


async def judge_debate(
    state: DebateState,
    judge: AIProvider,
    descriptor: BackendDescriptor,
    prompts: PromptsConfig,
    config: DebateConfig,
    timeout_sec: float,
) -> Verdict | DebateFailure:
    """Ask the judge for a verdict over the complete transcript.

    Returns a DebateFailure instead of raising when the judge call fails or
    its output cannot be coerced into a verdict.
    """
    judge_input = prompts.judge_input.format(
        topic=state.topic,
        context=state.context[:config.judge_context_chars],
        transcript=format_transcript(state.transcript),
    )

    logger.info("Judging %d turns via %s", len(state.transcript), descriptor.name)

    raw = await invoke(
        judge, descriptor, prompts.judge, judge_input,
        max_tokens=config.max_tokens, timeout_sec=timeout_sec,
    )
    if not raw.ok:
        return DebateFailure(DebatePhase.JUDGING, None, None, descriptor.name, raw.error or "unknown error")

    payload = extract_verdict(raw.text)
    if isinstance(payload, Malformed):
        logger.warning("Judge %s returned malformed verdict: %s", descriptor.name, payload.reason)
        return DebateFailure(DebatePhase.JUDGING, None, None, descriptor.name, payload.reason)

    return Verdict(
        winner=payload.winner,  # type: ignore[arg-type]
        confidence=payload.confidence,
        reasoning=payload.reasoning,
        key_factors=payload.key_factors,
        recommendation=payload.recommendation,
        judge=descriptor.name,
    )
