"""Immutable pattern and severity tables for the content policy engine.

Built once at process start and passed by reference to ``PolicyEngine``.
Nothing here is mutated after construction, so concurrent requests can share
one instance without locking.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from guarded_rag.exceptions import ConfigurationError
from guarded_rag.models.domain import Severity, ViolationKind

DEFAULT_REDACTION_TOKEN = "[REDACTED]"

THREAT_PATTERN_NAME = "threat_pattern"

# Profanity, hate and threat vocabulary; matched as case-insensitive substrings.
DEFAULT_TOXIC_TERMS: tuple[str, ...] = (
    # Profanity
    "fuck", "shit", "damn", "bitch", "asshole", "bastard",
    # Hate speech indicators
    "hate", "kill", "murder", "terrorist", "nazi", "fascist",
    # Discriminatory terms
    "retard", "faggot", "nigger", "chink", "spic",
    # Threats
    "bomb", "explosion", "attack", "violence", "harm",
)

DEFAULT_THREAT_PATTERN = r"\b(kill|murder|harm)\s+(you|yourself|me|us)\b"

DEFAULT_CONFIDENTIAL_PATTERNS: dict[str, str] = {
    "SSN": r"\b\d{3}-\d{2}-\d{4}\b|\b\d{9}\b",
    "CREDIT_CARD": r"\b(?:\d{4}[- ]?){3}\d{4}\b",
    "EMAIL": r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b",
    "PHONE": r"\b\(?\d{3}\)?[- ]?\d{3}[- ]?\d{4}\b",
    "IP_ADDRESS": r"\b(?:\d{1,3}\.){3}\d{1,3}\b",
    "API_KEY": r"\b[A-Za-z0-9]{32,}\b",
    "PASSWORD": r"(?i)password[\s:=]+[\w!@#$%^&*()]+",
}

DEFAULT_ORGANIZATION_PATTERNS: dict[str, str] = {
    "EMPLOYEE_ID": r"\bEMP\d{6}\b",
    "CUSTOMER_ID": r"\bCUST\d{8}\b",
    "INTERNAL_CODE": r"\b[A-Z]{3}-\d{4}-[A-Z]{2}\b",
}

# Severity is fixed per violation kind.
SEVERITY_BY_KIND: Mapping[ViolationKind, Severity] = MappingProxyType(
    {
        ViolationKind.TOXIC_CONTENT: Severity.HIGH,
        ViolationKind.THREAT: Severity.CRITICAL,
        ViolationKind.CONFIDENTIAL_DATA: Severity.HIGH,
        ViolationKind.ORGANIZATION_CONFIDENTIAL: Severity.MEDIUM,
    }
)


@dataclass(frozen=True)
class PolicyConfig:
    toxic_terms: tuple[str, ...]
    threat_pattern: re.Pattern[str]
    confidential_patterns: Mapping[str, re.Pattern[str]]
    organization_patterns: Mapping[str, re.Pattern[str]]
    severities: Mapping[ViolationKind, Severity]
    # Every pattern whose matches are masked during sanitization.
    redaction_patterns: tuple[re.Pattern[str], ...]
    redaction_token: str = DEFAULT_REDACTION_TOKEN


def _compile_table(table: Mapping[str, str]) -> Mapping[str, re.Pattern[str]]:
    compiled: dict[str, re.Pattern[str]] = {}
    for name, expr in table.items():
        try:
            compiled[name] = re.compile(expr)
        except re.error as e:
            raise ConfigurationError(f"Invalid policy pattern {name!r}: {e}") from e
    return MappingProxyType(compiled)


def build_policy_config(
    extra_toxic_terms: Iterable[str] = (),
    extra_org_patterns: Mapping[str, str] | None = None,
    redaction_token: str = DEFAULT_REDACTION_TOKEN,
) -> PolicyConfig:
    """Build the policy tables, merging deployment-specific additions."""
    terms = list(DEFAULT_TOXIC_TERMS)
    for term in extra_toxic_terms:
        term = term.strip().lower()
        if term and term not in terms:
            terms.append(term)

    org_patterns = dict(DEFAULT_ORGANIZATION_PATTERNS)
    if extra_org_patterns:
        org_patterns.update(extra_org_patterns)

    confidential = _compile_table(DEFAULT_CONFIDENTIAL_PATTERNS)
    organization = _compile_table(org_patterns)

    # A pattern matching the token would re-mask it on every pass.
    for name, pattern in {**confidential, **organization}.items():
        if pattern.search(redaction_token):
            raise ConfigurationError(
                f"Policy pattern {name!r} matches the redaction token {redaction_token!r}"
            )

    return PolicyConfig(
        toxic_terms=tuple(terms),
        threat_pattern=re.compile(DEFAULT_THREAT_PATTERN, re.IGNORECASE),
        confidential_patterns=confidential,
        organization_patterns=organization,
        severities=SEVERITY_BY_KIND,
        redaction_patterns=tuple(confidential.values()) + tuple(organization.values()),
        redaction_token=redaction_token,
    )


def default_policy_config() -> PolicyConfig:
    return build_policy_config()
