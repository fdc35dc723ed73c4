"""Tests for diligence/extraction.py — no API calls."""

import pytest

from diligence.extraction import (
    DEFAULT_RISK_SCORE,
    AnalysisPayload,
    ArgumentPayload,
    Malformed,
    VerdictPayload,
    WellFormed,
    extract,
    extract_analysis,
    extract_answer,
    extract_argument,
    extract_verdict,
    find_json_region,
)


def test_find_region_in_markdown_fence():
    text = 'Sure!\n```json\n{"risk_score": 40, "findings": []}\n```\nThanks.'
    assert find_json_region(text) == '{"risk_score": 40, "findings": []}'


def test_find_region_nested_objects():
    text = 'x {"a": {"b": {"c": 1}}, "d": 2} trailing } brace'
    assert find_json_region(text) == '{"a": {"b": {"c": 1}}, "d": 2}'


def test_find_region_ignores_braces_inside_strings():
    text = '{"title": "Clause {4.2} says \\"}\\" here", "n": 1} {"second": true}'
    assert find_json_region(text) == '{"title": "Clause {4.2} says \\"}\\" here", "n": 1}'


def test_find_region_takes_first_of_two_objects():
    assert find_json_region('{"a": 1} and {"b": 2}') == '{"a": 1}'


def test_find_region_none_when_unbalanced():
    assert find_json_region('{"a": 1') is None
    assert find_json_region("no json at all") is None


def test_extract_well_formed():
    parsed = extract('prefix {"risk_score": 10} suffix')
    assert isinstance(parsed, WellFormed)
    assert parsed.fields == {"risk_score": 10}


def test_extract_no_region_is_malformed():
    parsed = extract("I could not analyze this document.")
    assert isinstance(parsed, Malformed)
    assert "No JSON" in parsed.reason
    assert parsed.raw_text == "I could not analyze this document."


def test_extract_invalid_json_is_malformed():
    parsed = extract("{risk_score: 10}")
    assert isinstance(parsed, Malformed)
    assert "Invalid JSON" in parsed.reason


def test_extract_none_text_is_malformed():
    assert isinstance(extract(None), Malformed)


def test_analysis_defaults_for_absent_fields():
    payload = extract_analysis('{"findings": [{"title": "x"}]}')
    assert isinstance(payload, AnalysisPayload)
    assert payload.risk_score == DEFAULT_RISK_SCORE
    assert payload.executive_summary == ""
    assert payload.findings == [{"title": "x"}]


def test_analysis_zero_score_is_kept():
    payload = extract_analysis('{"risk_score": 0, "findings": []}')
    assert payload.risk_score == 0.0


@pytest.mark.parametrize("raw, expected", [('"65"', 65.0), ("150", 100.0), ("-3", 0.0), ('"high"', 50.0)])
def test_analysis_risk_score_coercion(raw, expected):
    payload = extract_analysis('{"risk_score": %s}' % raw)
    assert payload.risk_score == expected


def test_analysis_findings_not_a_list():
    payload = extract_analysis('{"risk_score": 20, "findings": "none"}')
    assert payload.findings == []


def test_analysis_malformed_propagates():
    assert isinstance(extract_analysis("```json\n{broken\n```"), Malformed)


def test_argument_payload():
    payload = extract_argument('{"argument": "The cap is fine.", "key_points": ["a", "", null], "evidence_cited": "s. 9.1"}')
    assert isinstance(payload, ArgumentPayload)
    assert payload.argument == "The cap is fine."
    assert payload.key_points == ("a",)
    assert payload.evidence_cited == ("s. 9.1",)


def test_argument_without_text_is_malformed():
    payload = extract_argument('{"key_points": ["a"]}')
    assert isinstance(payload, Malformed)
    assert "no argument" in payload.reason


@pytest.mark.parametrize("winner, expected", [("FOR", "for"), ("against", "against"), (" Tie ", "tie")])
def test_verdict_winner_coercion(winner, expected):
    payload = extract_verdict('{"winner": "%s", "confidence": 0.9}' % winner)
    assert isinstance(payload, VerdictPayload)
    assert payload.winner == expected
    assert payload.confidence == 0.9


@pytest.mark.parametrize("winner", ["Claude", "BOTH", "", "null"])
def test_verdict_unknown_winner_is_malformed(winner):
    payload = extract_verdict('{"winner": "%s"}' % winner)
    assert isinstance(payload, Malformed)
    assert "FOR, AGAINST or TIE" in payload.reason


def test_verdict_confidence_clamped_and_defaulted():
    assert extract_verdict('{"winner": "FOR", "confidence": 7}').confidence == 1.0
    assert extract_verdict('{"winner": "FOR"}').confidence == 0.5


def test_answer_payload_defaults():
    payload = extract_answer('{"key_points": ["x"]}')
    assert payload.confidence == 0.7
    assert payload.response == '{"key_points": ["x"]}'
