"""Deterministic content policy engine: toxic/threat, confidential and organization patterns.

This module contains NO machine learning and NO I/O. Given the same
``PolicyConfig`` the same text always yields the same violations, in the same
order: toxic terms in vocabulary order, then the threat pattern, then the
confidential table, then the organization table.
"""

from __future__ import annotations

from guarded_rag.exceptions import PolicyViolationError
from guarded_rag.guardrails.policy_config import THREAT_PATTERN_NAME, PolicyConfig
from guarded_rag.models.domain import (
    ContentType,
    PolicyViolation,
    ValidationResult,
    ViolationKind,
)

# Upper bound on redaction passes; one pass is enough for the default tables.
_MAX_SANITIZE_PASSES = 5


class PolicyEngine:
    def __init__(self, config: PolicyConfig) -> None:
        self._config = config

    @property
    def config(self) -> PolicyConfig:
        return self._config

    def validate(self, text: str, content_type: ContentType) -> ValidationResult:
        violations = (
            self._detect_toxic(text)
            + self._detect_confidential(text)
            + self._detect_organization(text)
        )
        return ValidationResult(
            valid=not violations,
            violations=tuple(violations),
            sanitized_text=self.sanitize(text),
        )

    def enforce(self, text: str, content_type: ContentType) -> None:
        """Raise ``PolicyViolationError`` if ``text`` breaks any policy."""
        result = self.validate(text, content_type)
        if not result.valid:
            raise PolicyViolationError(content_type, result.violations)

    def sanitize(self, text: str) -> str:
        """Mask every confidential and organization match with the redaction token.

        Passes repeat until no pattern matches, so sanitize(sanitize(x)) == sanitize(x).
        """
        token = self._config.redaction_token
        sanitized = text
        for _ in range(_MAX_SANITIZE_PASSES):
            previous = sanitized
            for pattern in self._config.redaction_patterns:
                sanitized = pattern.sub(token, sanitized)
            if sanitized == previous:
                break
        return sanitized

    def _detect_toxic(self, text: str) -> list[PolicyViolation]:
        violations: list[PolicyViolation] = []
        lower = text.lower()
        severity = self._config.severities[ViolationKind.TOXIC_CONTENT]

        for term in self._config.toxic_terms:
            if term in lower:
                violations.append(
                    PolicyViolation(
                        kind=ViolationKind.TOXIC_CONTENT,
                        pattern=term,
                        description="Toxic language detected",
                        severity=severity,
                    )
                )

        if self._config.threat_pattern.search(text):
            violations.append(
                PolicyViolation(
                    kind=ViolationKind.THREAT,
                    pattern=THREAT_PATTERN_NAME,
                    description="Threatening language detected",
                    severity=self._config.severities[ViolationKind.THREAT],
                )
            )
        return violations

    def _detect_confidential(self, text: str) -> list[PolicyViolation]:
        severity = self._config.severities[ViolationKind.CONFIDENTIAL_DATA]
        return [
            PolicyViolation(
                kind=ViolationKind.CONFIDENTIAL_DATA,
                pattern=name,
                description=f"Confidential data pattern detected: {name}",
                severity=severity,
            )
            for name, pattern in self._config.confidential_patterns.items()
            if pattern.search(text)
        ]

    def _detect_organization(self, text: str) -> list[PolicyViolation]:
        severity = self._config.severities[ViolationKind.ORGANIZATION_CONFIDENTIAL]
        return [
            PolicyViolation(
                kind=ViolationKind.ORGANIZATION_CONFIDENTIAL,
                pattern=name,
                description=f"Organization confidential pattern detected: {name}",
                severity=severity,
            )
            for name, pattern in self._config.organization_patterns.items()
            if pattern.search(text)
        ]
