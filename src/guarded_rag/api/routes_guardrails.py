"""Standalone content validation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from guarded_rag.api.dependencies import get_policy_engine
from guarded_rag.api.rate_limiter import rate_limit
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.models.schemas import ValidateContentRequest, ValidateContentResponse
from guarded_rag.observability.logger import get_logger

logger = get_logger("routes_guardrails")

router = APIRouter(prefix="/guardrails")


@router.post("/validate", response_model=ValidateContentResponse)
async def validate_content(
    request: ValidateContentRequest,
    engine: PolicyEngine = Depends(get_policy_engine),
    user_id: str = Depends(rate_limit),
) -> ValidateContentResponse:
    result = engine.validate(request.content, request.content_type)
    if not result.valid:
        logger.warning(
            "content_validation_failed",
            user_id=user_id,
            content_type=request.content_type.value,
            violations=[v.to_dict() for v in result.violations],
        )
    return ValidateContentResponse.from_result(result)
