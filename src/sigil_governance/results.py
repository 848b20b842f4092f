# -*- encoding: utf-8 -*-
"""Structured validation results shared by the zone, physics and contagion validators."""

from dataclasses import dataclass, field
from typing import Any


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class Violation:
    """
    A single rule violation.

    Args:
        rule: Stable rule identifier (e.g. 'timing-too-fast')
        message: Human-readable explanation
        paths: Files or dependency chain involved, outermost first
        severity: 'error' or 'warning'
        details: Rule-specific data (bounds, zone, motion, ...)
    """
    rule: str
    message: str
    paths: tuple[str, ...] = ()
    severity: str = SEVERITY_ERROR
    details: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict:
        return {
            "rule": self.rule,
            "message": self.message,
            "paths": list(self.paths),
            "severity": self.severity,
            "details": dict(self.details),
        }


@dataclass
class ValidationResult:
    """Outcome of a validation: valid unless an error-severity violation is present."""
    violations: list[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not any(v.severity == SEVERITY_ERROR for v in self.violations)

    @property
    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == SEVERITY_ERROR]

    @property
    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == SEVERITY_WARNING]

    def add(self, violation: Violation) -> None:
        self.violations.append(violation)

    def extend(self, other: "ValidationResult") -> "ValidationResult":
        self.violations.extend(other.violations)
        return self

    def rules(self) -> list[str]:
        """Rule identifiers of all violations, in order."""
        return [v.rule for v in self.violations]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
        }

    def __bool__(self) -> bool:
        return self.valid
