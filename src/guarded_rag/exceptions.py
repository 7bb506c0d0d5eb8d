"""Closed exception hierarchy for the guarded RAG pipeline.

Every error carries a machine-readable ``code``, the HTTP ``status_code`` the
API layer maps it to, and a ``context`` dict with structured detail.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from guarded_rag.models.domain import ContentType, PolicyViolation


class GuardedRAGError(Exception):
    """Base exception for all pipeline errors."""

    code = "PROCESSING_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or {}


class ConfigurationError(GuardedRAGError):
    """Error in system configuration."""

    code = "CONFIGURATION_ERROR"


# Caller errors: surfaced immediately, never retried


class CallerError(GuardedRAGError):
    """The request itself is invalid or not permitted."""

    code = "BAD_REQUEST"
    status_code = 400


class InvalidParameterError(CallerError):
    code = "INVALID_PARAMETER"
    status_code = 400


class UnauthorizedError(CallerError):
    code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(CallerError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(CallerError):
    code = "NOT_FOUND"
    status_code = 404


class PreconditionFailedError(CallerError):
    code = "COLLECTION_NOT_READY"
    status_code = 412


# Policy violations: terminal for the request


class PolicyViolationError(GuardedRAGError):
    """Content failed the guardrail policy."""

    code = "CONTENT_POLICY_VIOLATION"
    status_code = 400

    def __init__(
        self,
        content_type: ContentType,
        violations: tuple[PolicyViolation, ...],
    ) -> None:
        self.content_type = content_type
        self.violations = violations
        self.summary = ", ".join(f"{v.kind.value}:{v.pattern}" for v in violations)
        super().__init__(
            f"Content policy violation detected: {self.summary}",
            context={
                "content_type": content_type.value,
                "violations": [v.to_dict() for v in violations],
            },
        )


# Collaborator failures


class CollaboratorError(GuardedRAGError):
    """An external collaborator (embedding, search, LLM) failed."""

    code = "PROCESSING_ERROR"
    status_code = 502


class EmbeddingError(CollaboratorError):
    """Error generating embeddings."""


class RetrievalError(CollaboratorError):
    """Error during similarity search."""


class GenerationError(CollaboratorError):
    """Error during answer generation."""


class ScoringError(CollaboratorError):
    """Error obtaining a relevance judgment from the language model."""


# Internal


class InternalProcessingError(GuardedRAGError):
    """Unexpected failure, classified once at the pipeline boundary."""

    code = "PROCESSING_ERROR"
    status_code = 500
