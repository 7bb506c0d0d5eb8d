"""Core domain objects used throughout the system.

All objects are created per request and never mutated; re-scoring or
re-ranking builds new instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ContentType(str, Enum):
    USER_QUERY = "USER_QUERY"
    AI_RESPONSE = "AI_RESPONSE"
    CONTEXT_CHUNK = "CONTEXT_CHUNK"
    KNOWLEDGE_UPLOAD = "KNOWLEDGE_UPLOAD"


class ViolationKind(str, Enum):
    TOXIC_CONTENT = "TOXIC_CONTENT"
    THREAT = "THREAT"
    CONFIDENTIAL_DATA = "CONFIDENTIAL_DATA"
    ORGANIZATION_CONFIDENTIAL = "ORGANIZATION_CONFIDENTIAL"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


@dataclass(frozen=True)
class PolicyViolation:
    kind: ViolationKind
    pattern: str  # toxic word, "threat_pattern", or pattern table name
    description: str
    severity: Severity

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "pattern": self.pattern,
            "description": self.description,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    violations: tuple[PolicyViolation, ...]
    sanitized_text: str

    @property
    def max_severity(self) -> Severity | None:
        if not self.violations:
            return None
        return max(v.severity for v in self.violations)


@dataclass(frozen=True)
class Query:
    question: str
    collection_id: str
    session_id: str | None = None
    top_k: int = 5
    score_threshold: float = 0.7
    enable_reranking: bool = True


@dataclass(frozen=True)
class Candidate:
    candidate_id: str
    text: str
    score: float  # similarity score from the search collaborator
    chunk_index: int
    document_label: str | None = None


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    relevance_score: float
    fused_score: float
    scoring_fallback: bool = False


@dataclass(frozen=True)
class RelevanceJudgment:
    score: float  # normalized to [0, 1]
    fallback: bool  # True when the neutral score was used because the call failed


@dataclass(frozen=True)
class RankMovement:
    candidate_id: str
    original_rank: int  # 1-based
    new_rank: int  # 1-based
    similarity_score: float
    relevance_score: float
    fused_score: float


@dataclass(frozen=True)
class RerankOutcome:
    candidates: list[Candidate]
    scored: list[ScoredCandidate]
    movements: list[RankMovement]
    degraded: bool  # batch failed and the original order was returned
    scoring_fallbacks: int

    @property
    def fused_scores(self) -> dict[str, float]:
        return {s.candidate.candidate_id: s.fused_score for s in self.scored}


@dataclass(frozen=True)
class Collection:
    collection_id: str
    owner_id: str
    status: str
    name: str | None = None
    file_name: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def label(self) -> str:
        return self.name or self.file_name or self.collection_id


@dataclass(frozen=True)
class ProvenanceEntry:
    candidate_id: str
    document_label: str
    chunk_index: int
    score: float


@dataclass(frozen=True)
class PipelineResult:
    answer: str
    collection_id: str
    session_id: str | None
    provenance: list[ProvenanceEntry]
    context_chunks_used: int
    min_score: float
    max_score: float
    reranking_applied: bool = False
    rerank_degraded: bool = False
    scoring_fallbacks: int = 0
    rank_movements: list[RankMovement] = field(default_factory=list)
    trace_id: str = ""


@dataclass
class Trace:
    trace_id: str
    question: str
    collection_id: str
    timestamp: datetime
    latency_ms: float
    outcome: str  # "answered", "no_context", "error"
    error_code: str | None
    context_chunks_used: int
    rerank_degraded: bool
    spans: list[dict]
