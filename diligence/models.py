"""Pure dataclasses for the due-diligence consensus engine. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

Severity = Literal["critical", "high", "medium", "low", "unknown"]
DebateSide = Literal["for", "against"]
Winner = Literal["for", "against", "tie"]
ErrorKind = Literal["transport", "timeout", "malformed"]


class BackendStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class AgreementLevel(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NONE = "none"


class DebatePhase(str, Enum):
    SETUP = "setup"
    FOR_TURN = "for_turn"
    AGAINST_TURN = "against_turn"
    JUDGING = "judging"
    VERDICT = "verdict"
    FAILED = "failed"


@dataclass(frozen=True)
class BackendDescriptor:
    name: str              # registry key, e.g. "claude"
    role: str              # specialization text rendered into the instruction


@dataclass
class ModelResponse:
    provider: str
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class AnalysisRequest:
    text: str
    backends: list[BackendDescriptor]
    timeout_sec: float | None = None   # per-backend; None -> configured default


@dataclass
class RawBackendResult:
    backend: str
    status: BackendStatus
    duration_sec: float
    text: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.status is BackendStatus.SUCCESS


@dataclass(frozen=True)
class NormalizedFinding:
    title: str
    severity: Severity
    description: str
    recommendation: str
    confidence: float
    backend: str


@dataclass
class ConsensusMetrics:
    mean: float
    stddev: float
    consensus_score: int
    agreement_level: AgreementLevel
    count: int
    interpretation: str = ""
    human_review_recommended: bool = False


@dataclass
class BackendAnalysis:
    backend: str
    role: str
    status: BackendStatus
    duration_sec: float
    risk_score: float | None = None
    findings: list[NormalizedFinding] = field(default_factory=list)
    executive_summary: str = ""
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.status is BackendStatus.SUCCESS


@dataclass
class AnalysisResult:
    backends: list[BackendAnalysis]
    consensus: ConsensusMetrics
    findings: list[NormalizedFinding]
    duration_sec: float


@dataclass(frozen=True)
class DebateTurn:
    round: int
    side: DebateSide
    backend: str
    argument: str
    key_points: tuple[str, ...]
    evidence_cited: tuple[str, ...]
    timestamp: datetime


@dataclass(frozen=True)
class Verdict:
    winner: Winner
    confidence: float
    reasoning: str
    key_factors: tuple[str, ...]
    recommendation: str
    judge: str


@dataclass
class DebateFailure:
    phase: DebatePhase     # phase that was running when the backend failed
    round: int | None
    side: DebateSide | None
    backend: str
    reason: str


@dataclass
class DebateState:
    topic: str
    rounds: int
    context: str = ""
    transcript: list[DebateTurn] = field(default_factory=list)
    phase: DebatePhase = DebatePhase.SETUP
    current_round: int = 0
    verdict: Verdict | None = None
    failure: DebateFailure | None = None


@dataclass
class DebateResult:
    state: DebateState
    verdict: Verdict
    for_backend: str
    against_backend: str
    judge_backend: str
    duration_sec: float


@dataclass
class ModelAnswer:
    backend: str
    status: BackendStatus
    duration_sec: float
    response: str = ""
    key_points: list[str] = field(default_factory=list)
    confidence: float = 0.0
    error: str | None = None


@dataclass
class ComparisonMetrics:
    models_responded: int
    average_confidence: float
    agreement_score: float
    fastest_model: str | None
    highest_confidence: str | None


@dataclass
class ComparisonResult:
    prompt: str
    answers: list[ModelAnswer]
    metrics: ComparisonMetrics
    duration_sec: float
