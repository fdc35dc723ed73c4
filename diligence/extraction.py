"""Locate and parse the JSON object embedded in a backend's free-form reply.

Models wrap their JSON in prose and markdown fences, so the first top-level
balanced ``{...}`` region is taken and parsed. The result is a sum type:
``WellFormed`` or ``Malformed``. Nothing in this module raises on bad model
output; callers branch on the variant.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RISK_SCORE = 50.0
DEFAULT_VERDICT_CONFIDENCE = 0.5
DEFAULT_ANSWER_CONFIDENCE = 0.7

_WINNERS = {"for": "for", "against": "against", "tie": "tie"}


@dataclass(frozen=True)
class WellFormed:
    fields: dict[str, Any]
    raw_text: str


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str


ParsedPayload = WellFormed | Malformed


@dataclass(frozen=True)
class AnalysisPayload:
    risk_score: float
    findings: list[Any]
    executive_summary: str


@dataclass(frozen=True)
class ArgumentPayload:
    argument: str
    key_points: tuple[str, ...]
    evidence_cited: tuple[str, ...]


@dataclass(frozen=True)
class VerdictPayload:
    winner: str
    confidence: float
    reasoning: str
    key_factors: tuple[str, ...]
    recommendation: str


@dataclass(frozen=True)
class AnswerPayload:
    response: str
    key_points: list[str]
    confidence: float


def find_json_region(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward the balance.
    """
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            return text[start:end + 1]
        start = text.find("{", start + 1)
    return None


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract(text: str | None) -> ParsedPayload:
    """Classify a reply as WellFormed (a parsed JSON object) or Malformed."""
    raw = text or ""
    region = find_json_region(raw)
    if region is None:
        return Malformed(raw, "No JSON object found in response")
    try:
        fields = json.loads(region)
    except json.JSONDecodeError as exc:
        return Malformed(raw, f"Invalid JSON in response: {exc.msg} at position {exc.pos}")
    if not isinstance(fields, dict):
        return Malformed(raw, "JSON region is not an object")
    return WellFormed(fields, raw)


def as_float(value: Any) -> float | None:
    """Lenient numeric coercion; bools, NaN and non-numeric strings give None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def clamp_unit(value: Any, default: float) -> float:
    number = as_float(value)
    if number is None:
        return default
    return min(1.0, max(0.0, number))


def as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value.strip() if isinstance(value, str) else str(value)


def as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [as_text(v) for v in value if v is not None and as_text(v)]


def extract_analysis(text: str | None) -> AnalysisPayload | Malformed:
    """Parse ``{risk_score, findings[], executive_summary}``; absent fields get defaults."""
    parsed = extract(text)
    if isinstance(parsed, Malformed):
        return parsed
    fields = parsed.fields

    score = as_float(fields.get("risk_score"))
    if score is None:
        if "risk_score" in fields:
            logger.debug("Non-numeric risk_score %r, using default", fields["risk_score"])
        score = DEFAULT_RISK_SCORE
    score = min(100.0, max(0.0, score))

    findings = fields.get("findings", [])
    if not isinstance(findings, list):
        findings = [findings] if isinstance(findings, dict) else []

    return AnalysisPayload(
        risk_score=score,
        findings=findings,
        executive_summary=as_text(fields.get("executive_summary")),
    )


def extract_argument(text: str | None) -> ArgumentPayload | Malformed:
    """Parse a debate turn ``{argument, key_points[], evidence_cited[]}``.

    A turn with no argument text is malformed: later turns would rebut nothing.
    """
    parsed = extract(text)
    if isinstance(parsed, Malformed):
        return parsed
    argument = as_text(parsed.fields.get("argument"))
    if not argument:
        return Malformed(parsed.raw_text, "Debate payload has no argument")
    return ArgumentPayload(
        argument=argument,
        key_points=tuple(as_str_list(parsed.fields.get("key_points"))),
        evidence_cited=tuple(as_str_list(parsed.fields.get("evidence_cited"))),
    )


def extract_verdict(text: str | None) -> VerdictPayload | Malformed:
    """Parse the judge's verdict; winner must be FOR, AGAINST or TIE (any case)."""
    parsed = extract(text)
    if isinstance(parsed, Malformed):
        return parsed
    fields = parsed.fields
    raw_winner = fields.get("winner")
    winner = _WINNERS.get(as_text(raw_winner).lower())
    if winner is None:
        return Malformed(parsed.raw_text, f"Verdict winner must be FOR, AGAINST or TIE, got {raw_winner!r}")
    return VerdictPayload(
        winner=winner,
        confidence=clamp_unit(fields.get("confidence"), DEFAULT_VERDICT_CONFIDENCE),
        reasoning=as_text(fields.get("reasoning")),
        key_factors=tuple(as_str_list(fields.get("key_factors"))),
        recommendation=as_text(fields.get("recommendation")),
    )


def extract_answer(text: str | None) -> AnswerPayload | Malformed:
    """Parse a comparison answer ``{response, key_points[], confidence}``."""
    parsed = extract(text)
    if isinstance(parsed, Malformed):
        return parsed
    fields = parsed.fields
    return AnswerPayload(
        response=as_text(fields.get("response")) or parsed.raw_text.strip(),
        key_points=as_str_list(fields.get("key_points")),
        confidence=clamp_unit(fields.get("confidence"), DEFAULT_ANSWER_CONFIDENCE),
    )
