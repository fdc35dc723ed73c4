"""Result serialization (JSON-safe dicts), Rich console summaries, report files."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from diligence.errors import DebateFailedError
from diligence.models import (
    AnalysisResult,
    ComparisonResult,
    DebateResult,
    DebateTurn,
    NormalizedFinding,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

IMPLICATIONS = {
    "for": "The position is likely defensible. Proceed with current structure.",
    "against": "The position has material weaknesses. Consider renegotiation or additional protections.",
    "tie": "Arguments are balanced. Escalate to senior stakeholders for final decision.",
}

_SEVERITY_STYLE = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
    "unknown": "dim",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def finding_to_dict(finding: NormalizedFinding) -> dict[str, Any]:
    return {
        "title": finding.title,
        "severity": finding.severity,
        "description": finding.description,
        "recommendation": finding.recommendation,
        "confidence": finding.confidence,
        "backend": finding.backend,
    }


def turn_to_dict(turn: DebateTurn) -> dict[str, Any]:
    return {
        "round": turn.round,
        "side": turn.side,
        "backend": turn.backend,
        "argument": turn.argument,
        "key_points": list(turn.key_points),
        "evidence_cited": list(turn.evidence_cited),
        "timestamp": turn.timestamp.isoformat(),
    }


def analysis_to_dict(result: AnalysisResult) -> dict[str, Any]:
    consensus = result.consensus
    return {
        "per_backend_summary": [
            {
                "backend": b.backend,
                "status": b.status.value,
                "risk_score": b.risk_score,
                "findings_count": len(b.findings),
                "executive_summary": b.executive_summary,
                "duration_sec": round(b.duration_sec, 3),
                "error": b.error,
                "error_kind": b.error_kind,
            }
            for b in result.backends
        ],
        "consensus_metrics": {
            "consensus_score": consensus.consensus_score,
            "mean": consensus.mean,
            "stddev": consensus.stddev,
            "agreement_level": consensus.agreement_level.value,
            "count": consensus.count,
            "interpretation": consensus.interpretation,
            "human_review_recommended": consensus.human_review_recommended,
        },
        "merged_findings": [finding_to_dict(f) for f in result.findings],
        "total_findings": len(result.findings),
        "duration_sec": round(result.duration_sec, 3),
    }


def debate_to_dict(result: DebateResult) -> dict[str, Any]:
    verdict = result.verdict
    return {
        "topic": result.state.topic,
        "phase": result.state.phase.value,
        "format": {
            "for_backend": result.for_backend,
            "against_backend": result.against_backend,
            "judge_backend": result.judge_backend,
            "total_rounds": result.state.rounds,
        },
        "transcript": [turn_to_dict(t) for t in result.state.transcript],
        "verdict": {
            "winner": verdict.winner,
            "confidence": verdict.confidence,
            "reasoning": verdict.reasoning,
            "key_factors": list(verdict.key_factors),
            "recommendation": verdict.recommendation,
            "judge": verdict.judge,
        },
        "implications": dict(IMPLICATIONS),
        "duration_sec": round(result.duration_sec, 3),
    }


def debate_failure_to_dict(error: DebateFailedError) -> dict[str, Any]:
    failure = error.failure
    return {
        "topic": error.state.topic,
        "phase": error.state.phase.value,
        "failed_at": {
            "phase": failure.phase.value,
            "round": failure.round,
            "side": failure.side,
            "backend": failure.backend,
            "reason": failure.reason,
        },
        "transcript": [turn_to_dict(t) for t in error.state.transcript],
    }


def comparison_to_dict(result: ComparisonResult) -> dict[str, Any]:
    metrics = result.metrics
    return {
        "prompt": result.prompt,
        "models": [
            {
                "backend": a.backend,
                "status": a.status.value,
                "response": a.response,
                "key_points": a.key_points,
                "confidence": a.confidence,
                "duration_sec": round(a.duration_sec, 3),
                "error": a.error,
            }
            for a in result.answers
        ],
        "metrics": {
            "models_responded": metrics.models_responded,
            "average_confidence": metrics.average_confidence,
            "agreement_score": metrics.agreement_score,
            "fastest_model": metrics.fastest_model,
            "highest_confidence": metrics.highest_confidence,
        },
        "duration_sec": round(result.duration_sec, 3),
    }


def print_analysis(result: AnalysisResult) -> None:
    """Print per-backend status, consensus and the merged findings."""
    console.print(Rule("[bold cyan]Backend Results[/bold cyan]"))
    table = Table(show_header=True, header_style="bold")
    table.add_column("Backend")
    table.add_column("Status")
    table.add_column("Risk", justify="right")
    table.add_column("Findings", justify="right")
    table.add_column("Time", justify="right")
    for b in result.backends:
        status = "[green]ok[/green]" if b.ok else f"[red]{b.error_kind or 'error'}[/red]"
        risk = f"{b.risk_score:.0f}" if b.risk_score is not None else "-"
        table.add_row(escape(b.backend), status, risk, str(len(b.findings)), f"{b.duration_sec:.1f}s")
    console.print(table)
    for b in result.backends:
        if b.error:
            console.print(Text(f"{b.backend}: {b.error}", style="dim red"))

    c = result.consensus
    console.print(Rule("[bold green]Consensus[/bold green]"))
    console.print(
        f"Score [bold]{c.consensus_score}[/bold]/100 | agreement {c.agreement_level.value} | "
        f"mean risk {c.mean:.0f} | stddev {c.stddev:.1f} | {c.count} backend(s)"
    )
    console.print(Text(c.interpretation, style="yellow" if c.human_review_recommended else "green"))

    console.print(Rule(f"[bold]Findings ({len(result.findings)})[/bold]"))
    # Finding text is model output and is escaped before it meets markup.
    for f in result.findings:
        style = _SEVERITY_STYLE.get(f.severity, "dim")
        console.print(
            Panel(
                f"{escape(f.description)}\n\n[italic]Recommendation:[/italic] {escape(f.recommendation)}",
                title=f"[{style}]{f.severity.upper()}[/{style}] {escape(f.title)}",
                subtitle=f"{escape(f.backend)} | confidence {f.confidence:.2f}",
                border_style="dim",
            )
        )


def print_debate(result: DebateResult) -> None:
    """Print the transcript and the verdict."""
    for turn in result.state.transcript:
        console.print(
            Panel(
                Markdown(turn.argument),
                title=f"[bold]Round {turn.round} {turn.side.upper()}[/bold] ({turn.backend})",
                border_style="green" if turn.side == "for" else "red",
            )
        )
    verdict = result.verdict
    console.print(Rule(f"[bold green]Verdict by {verdict.judge}[/bold green]"))
    console.print(
        Text(
            f"Winner: {verdict.winner.upper()} | Confidence: {verdict.confidence:.2f} | "
            f"Duration: {result.duration_sec:.1f}s",
            style="bold",
        )
    )
    console.print(Markdown(verdict.reasoning))
    if verdict.recommendation:
        console.print(Text(f"Recommendation: {verdict.recommendation}", style="cyan"))
    console.print(Text(IMPLICATIONS[verdict.winner], style="dim"))


def print_comparison(result: ComparisonResult) -> None:
    for answer in result.answers:
        if answer.error:
            body, style = answer.error, "red"
        else:
            points = "\n".join(f"- {p}" for p in answer.key_points)
            body, style = f"{answer.response}\n\n{points}".strip(), "dim"
        console.print(
            Panel(
                Text(body),
                title=f"[bold]{answer.backend}[/bold]",
                subtitle=f"{answer.duration_sec:.1f}s | confidence {answer.confidence:.2f}",
                border_style=style,
            )
        )
    m = result.metrics
    console.print(
        Text(
            f"Responded: {m.models_responded} | Avg confidence: {m.average_confidence:.2f} | "
            f"Agreement: {m.agreement_score:.2f} | Fastest: {m.fastest_model or 'N/A'} | "
            f"Most confident: {m.highest_confidence or 'N/A'}",
            style="dim",
        )
    )


def save_report(data: dict[str, Any], output_dir: Path, kind: str, slug_source: str) -> Path:
    """Save a result dict as a timestamped JSON file.

    Args:
        data: Output of one of the ``*_to_dict`` functions.
        output_dir: Directory to save the file in (created if missing).
        kind: "analysis", "debate" or "comparison"; prefixes the filename.
        slug_source: Text the filename slug is derived from.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = _slug(slug_source) or kind
    filepath = output_dir / f"{timestamp}_{kind}_{slug}.json"
    filepath.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath
