"""Metric recording helpers for traces."""

from __future__ import annotations

from guarded_rag.models.domain import PolicyViolation, RerankOutcome
from guarded_rag.observability.logger import get_logger

logger = get_logger("metrics")


def log_policy_check(
    trace_id: str,
    content_type: str,
    content_length: int,
    violations: tuple[PolicyViolation, ...],
) -> None:
    severities = ",".join(v.severity.value for v in violations)
    logger.info(
        "guardrails_metric",
        trace_id=trace_id,
        content_type=content_type,
        content_length=content_length,
        valid=not violations,
        violations=len(violations),
        severity=severities,
    )


def log_rerank_metrics(trace_id: str, outcome: RerankOutcome, input_count: int) -> None:
    logger.info(
        "rerank_metrics",
        trace_id=trace_id,
        input_count=input_count,
        output_count=len(outcome.candidates),
        degraded=outcome.degraded,
        scoring_fallbacks=outcome.scoring_fallbacks,
        top_fused=[round(s.fused_score, 4) for s in outcome.scored[:5]],
    )
