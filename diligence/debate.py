"""Adversarial debate: alternating FOR/AGAINST turns, then an independent judge.

Turns run strictly one after another. Each turn sees the topic, the context
and every turn already committed to the transcript; a turn is committed
before the next backend is called. Any failure is terminal.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from config.config_loader import DebateConfig, PromptsConfig
from diligence.backend import BackendRegistry, invoke
from diligence.errors import DebateFailedError, InputError
from diligence.extraction import Malformed, extract_argument
from diligence.judging import format_transcript, judge_debate
from diligence.models import (
    BackendDescriptor,
    DebateFailure,
    DebatePhase,
    DebateResult,
    DebateSide,
    DebateState,
    DebateTurn,
)
from diligence.providers.base import AIProvider

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "No specific document context provided. Debate based on general M&A principles."

_STANCE = {"for": "IN FAVOR OF", "against": "AGAINST"}
_PHASE = {"for": DebatePhase.FOR_TURN, "against": DebatePhase.AGAINST_TURN}


def debate_descriptors(config: DebateConfig) -> tuple[BackendDescriptor, BackendDescriptor, BackendDescriptor]:
    """Return (for, against, judge) descriptors from settings."""
    return (
        BackendDescriptor(config.for_backend, config.for_role),
        BackendDescriptor(config.against_backend, config.against_role),
        BackendDescriptor(config.judge_backend, config.judge_role),
    )


def _resolve_rounds(rounds: int | None, config: DebateConfig) -> int:
    requested = config.rounds if rounds is None else rounds
    if requested < 1:
        raise InputError(f"Debate needs at least 1 round, got {requested}")
    if requested > config.max_rounds:
        logger.warning("Requested %d rounds, clamping to %d", requested, config.max_rounds)
        return config.max_rounds
    return requested


def _fail(state: DebateState, failure: DebateFailure) -> DebateFailedError:
    state.phase = DebatePhase.FAILED
    state.failure = failure
    logger.error(
        "Debate failed at %s (round %s, %s): %s",
        failure.phase.value, failure.round, failure.backend, failure.reason,
    )
    return DebateFailedError(failure, state)


async def _take_turn(
    state: DebateState,
    provider: AIProvider,
    descriptor: BackendDescriptor,
    side: DebateSide,
    round_number: int,
    prompts: PromptsConfig,
    config: DebateConfig,
    timeout_sec: float,
) -> DebateTurn | DebateFailure:
    turn_input = prompts.debate_input.format(
        topic=state.topic,
        context=state.context[:config.max_context_chars],
        transcript=format_transcript(state.transcript),
    )
    raw = await invoke(
        provider, descriptor, prompts.debate_turn, turn_input,
        max_tokens=config.max_tokens,
        timeout_sec=timeout_sec,
        stance=_STANCE[side],
        round=round_number,
        rounds=state.rounds,
    )
    if not raw.ok:
        return DebateFailure(_PHASE[side], round_number, side, descriptor.name, raw.error or "unknown error")

    payload = extract_argument(raw.text)
    if isinstance(payload, Malformed):
        return DebateFailure(_PHASE[side], round_number, side, descriptor.name, payload.reason)

    return DebateTurn(
        round=round_number,
        side=side,
        backend=descriptor.name,
        argument=payload.argument,
        key_points=payload.key_points,
        evidence_cited=payload.evidence_cited,
        timestamp=datetime.now(timezone.utc),
    )


async def run_debate(
    topic: str,
    registry: BackendRegistry,
    prompts: PromptsConfig,
    config: DebateConfig,
    *,
    context: str = "",
    rounds: int | None = None,
    timeout_sec: float = 120.0,
    on_turn: Callable[[DebateTurn], None] | None = None,
) -> DebateResult:
    """Run the full debate and return the terminal state with its verdict.

    Args:
        topic: The position being debated.
        registry: Backends available to this process.
        prompts: Prompt templates from config.
        config: Debate settings (backends, roles, limits).
        context: Document text; a general M&A context is used when blank.
        rounds: Number of FOR/AGAINST rounds; None uses the configured default.
        timeout_sec: Per-turn timeout.
        on_turn: Optional callback invoked after each turn is committed.

    Raises:
        InputError: Before any call, for an empty topic, fewer than three
            distinct backends, an unregistered backend or rounds < 1.
        DebateFailedError: When any turn or the judge fails; carries the
            failed state with every committed turn preserved.
    """
    if not topic or not topic.strip():
        raise InputError("Debate topic is required")
    for_desc, against_desc, judge_desc = debate_descriptors(config)
    names = [for_desc.name, against_desc.name, judge_desc.name]
    if len(set(names)) != 3:
        raise InputError(f"Debate needs three distinct backends (for, against, judge), got {names}")
    missing = [n for n in names if n not in registry]
    if missing:
        raise InputError(f"Backends not available: {', '.join(missing)}")
    total_rounds = _resolve_rounds(rounds, config)

    start = time.monotonic()
    state = DebateState(
        topic=topic.strip(),
        rounds=total_rounds,
        context=context.strip() or DEFAULT_CONTEXT,
    )
    sides: list[tuple[DebateSide, BackendDescriptor]] = [("for", for_desc), ("against", against_desc)]

    logger.info(
        "Starting debate: %d rounds, FOR=%s AGAINST=%s JUDGE=%s",
        total_rounds, for_desc.name, against_desc.name, judge_desc.name,
    )

    for round_number in range(1, total_rounds + 1):
        state.current_round = round_number
        for side, descriptor in sides:
            state.phase = _PHASE[side]
            outcome = await _take_turn(
                state, registry.get(descriptor.name), descriptor, side,
                round_number, prompts, config, timeout_sec,
            )
            if isinstance(outcome, DebateFailure):
                raise _fail(state, outcome)
            state.transcript.append(outcome)
            logger.info("Round %d %s committed (%s)", round_number, side.upper(), descriptor.name)
            if on_turn:
                on_turn(outcome)

    state.phase = DebatePhase.JUDGING
    verdict = await judge_debate(
        state, registry.get(judge_desc.name), judge_desc, prompts, config, timeout_sec,
    )
    if isinstance(verdict, DebateFailure):
        raise _fail(state, verdict)

    state.verdict = verdict
    state.phase = DebatePhase.VERDICT
    duration = time.monotonic() - start
    logger.info("Verdict: %s (confidence %.2f) in %.1fs", verdict.winner.upper(), verdict.confidence, duration)

    return DebateResult(
        state=state,
        verdict=verdict,
        for_backend=for_desc.name,
        against_backend=against_desc.name,
        judge_backend=judge_desc.name,
        duration_sec=duration,
    )
