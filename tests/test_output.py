"""Tests for diligence/output.py."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from diligence.consensus import compute_consensus
from diligence.errors import DebateFailedError
from diligence.models import (
    AnalysisResult,
    BackendAnalysis,
    BackendStatus,
    ComparisonMetrics,
    ComparisonResult,
    DebateFailure,
    DebatePhase,
    DebateResult,
    DebateState,
    DebateTurn,
    ModelAnswer,
    NormalizedFinding,
    Verdict,
)
from diligence.output import (
    _slug,
    analysis_to_dict,
    comparison_to_dict,
    console,
    debate_failure_to_dict,
    debate_to_dict,
    print_analysis,
    print_comparison,
    print_debate,
    save_report,
)


def _turn(round_number: int, side: str, backend: str) -> DebateTurn:
    return DebateTurn(round_number, side, backend, f"{side} says", ("point",), (),  # type: ignore[arg-type]
                      datetime(2025, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def analysis_result() -> AnalysisResult:
    finding = NormalizedFinding("Uncapped indemnity", "high", "No cap.", "Negotiate a cap.", 0.8, "claude")
    return AnalysisResult(
        backends=[
            BackendAnalysis("claude", "legal", BackendStatus.SUCCESS, 1.234567, 70, [finding], "Risky."),
            BackendAnalysis("openai", "financial", BackendStatus.ERROR, 2.0, error="Empty response content",
                            error_kind="transport"),
        ],
        consensus=compute_consensus([(70, True)]),
        findings=[finding],
        duration_sec=2.5,
    )


@pytest.fixture
def debate_result() -> DebateResult:
    state = DebateState("Earnout is fair", rounds=1, context="ctx",
                        transcript=[_turn(1, "for", "claude"), _turn(1, "against", "openai")],
                        phase=DebatePhase.VERDICT)
    verdict = Verdict("against", 0.7, "AGAINST was stronger.", ("Evidence",), "Renegotiate.", "gemini")
    state.verdict = verdict
    return DebateResult(state, verdict, "claude", "openai", "gemini", 12.0)


def test_slug_basic():
    assert _slug("Is the earnout fair?") == "is-the-earnout-fair"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("SPA vs. APA (2024)")
    assert "." not in result
    assert "(" not in result


def test_analysis_to_dict_shape(analysis_result):
    data = analysis_to_dict(analysis_result)
    assert data["total_findings"] == 1
    assert data["merged_findings"][0]["backend"] == "claude"
    assert data["per_backend_summary"][0]["duration_sec"] == 1.235
    assert data["per_backend_summary"][1]["status"] == "error"
    assert data["per_backend_summary"][1]["error_kind"] == "transport"
    assert data["consensus_metrics"]["agreement_level"] == "strong"
    json.dumps(data)


def test_debate_to_dict_shape(debate_result):
    data = debate_to_dict(debate_result)
    assert data["phase"] == "verdict"
    assert data["format"] == {
        "for_backend": "claude",
        "against_backend": "openai",
        "judge_backend": "gemini",
        "total_rounds": 1,
    }
    assert [t["side"] for t in data["transcript"]] == ["for", "against"]
    assert data["transcript"][0]["timestamp"].startswith("2025-01-01")
    assert data["verdict"]["winner"] == "against"
    assert set(data["implications"]) == {"for", "against", "tie"}
    json.dumps(data)


def test_debate_failure_to_dict():
    state = DebateState("Earnout is fair", rounds=2, transcript=[_turn(1, "for", "claude")],
                        phase=DebatePhase.FAILED)
    failure = DebateFailure(DebatePhase.AGAINST_TURN, 1, "against", "openai", "timed out")
    data = debate_failure_to_dict(DebateFailedError(failure, state))
    assert data["phase"] == "failed"
    assert data["failed_at"]["phase"] == "against_turn"
    assert data["failed_at"]["backend"] == "openai"
    assert len(data["transcript"]) == 1


def test_comparison_to_dict():
    result = ComparisonResult(
        prompt="Q?",
        answers=[ModelAnswer("claude", BackendStatus.SUCCESS, 1.0, "A.", ["k"], 0.9)],
        metrics=ComparisonMetrics(1, 0.9, 1.0, "claude", "claude"),
        duration_sec=1.0,
    )
    data = comparison_to_dict(result)
    assert data["models"][0]["status"] == "success"
    assert data["metrics"]["fastest_model"] == "claude"


def test_save_report_writes_json(tmp_path: Path, analysis_result):
    saved = save_report(analysis_to_dict(analysis_result), tmp_path / "nested" / "output", "analysis", "SPA v3.md")
    assert saved.exists()
    assert saved.suffix == ".json"
    assert "_analysis_spa-v3md" in saved.name
    assert json.loads(saved.read_text(encoding="utf-8"))["total_findings"] == 1


def test_save_report_falls_back_to_kind_slug(tmp_path: Path):
    saved = save_report({}, tmp_path, "comparison", "???")
    assert saved.name.endswith("_comparison_comparison.json")


def test_printers_do_not_raise(analysis_result, debate_result):
    print_analysis(analysis_result)
    print_debate(debate_result)
    print_comparison(ComparisonResult("Q?", [ModelAnswer("openai", BackendStatus.ERROR, 0.1, error="down")],
                                      ComparisonMetrics(0, 0.0, 1.0, None, None), 0.1))


def test_print_analysis_shows_markup_like_text_literally():
    finding = NormalizedFinding("[bold]Scope[/bold]", "high", "Use and[/] or language",
                                "Replace [/red] wording", 0.8, "claude")
    result = AnalysisResult(
        backends=[BackendAnalysis("claude", "legal", BackendStatus.SUCCESS, 1.0, 70, [finding])],
        consensus=compute_consensus([(70, True)]),
        findings=[finding],
        duration_sec=1.0,
    )
    with console.capture() as capture:
        print_analysis(result)
    text = capture.get()
    assert "and[/] or" in text
    assert "[/red]" in text
    assert "[bold]Scope[/bold]" in text


def test_print_comparison_shows_markup_like_text_literally():
    answer = ModelAnswer("openai", BackendStatus.SUCCESS, 1.0, "Keep [/] as is", ["[/i] point"], 0.7)
    with console.capture() as capture:
        print_comparison(ComparisonResult("Q?", [answer], ComparisonMetrics(1, 0.7, 1.0, "openai", "openai"), 1.0))
    assert "Keep [/] as is" in capture.get()
