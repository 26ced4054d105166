"""Validation reports shared by document and receipt validation."""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import Severity


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    code: str
    message: str
    severity: Severity = Severity.ERROR
    path: str | None = None

    def __str__(self) -> str:
        location = f" at {self.path}" if self.path else ""
        return f"[{self.code}] {self.message}{location}"


@dataclass(slots=True, frozen=True)
class ValidationReport:
    """Outcome of a validation run.

    Any ``error`` entry blocks signing and submission; warnings are informational.
    """

    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> tuple[ValidationIssue, ...]:
        return self.errors + self.warnings

    def codes(self) -> set[str]:
        return {issue.code for issue in self.issues}

    def merge(self, other: ValidationReport) -> ValidationReport:
        return ValidationReport(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def with_issue(self, issue: ValidationIssue) -> ValidationReport:
        if issue.severity is Severity.ERROR:
            return ValidationReport(errors=(*self.errors, issue), warnings=self.warnings)
        return ValidationReport(errors=self.errors, warnings=(*self.warnings, issue))

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> ValidationReport:
        return cls(
            errors=tuple(issue for issue in issues if issue.severity is Severity.ERROR),
            warnings=tuple(issue for issue in issues if issue.severity is Severity.WARNING),
        )
