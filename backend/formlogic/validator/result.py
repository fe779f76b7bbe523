"""
Result objects for logic validation.

Validation never raises for problems in a definition. Every problem becomes
a ``LogicValidationIssue`` on a ``LogicValidationResult``; callers that
prefer exceptions use ``raise_for_errors()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config import get_config
from ..logic.errors import (
    CircularDependencyWarning,
    ExpressionSyntaxError,
    FormLogicError,
    PathSegment,
    TypeMismatchError,
    TypeUnknownWarning,
    UnknownFunctionError,
    UnknownVariableError,
)
from ..logic.inferred_types import Severity


class IssueCategory(str, Enum):
    """What kind of problem an issue reports."""

    SCHEMA_ERROR = "schema_error"
    SYNTAX_ERROR = "syntax_error"
    UNKNOWN_VARIABLE = "unknown_variable"
    UNKNOWN_FUNCTION = "unknown_function"
    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_PARTY = "unknown_party"
    TYPE_MISMATCH = "type_mismatch"
    TYPE_UNKNOWN = "type_unknown"
    OPERAND_TYPE_MISMATCH = "operand_type_mismatch"
    LOGIC_TYPE_MISMATCH = "logic_type_mismatch"
    CIRCULAR_DEPENDENCY = "circular_dependency"

    def __str__(self) -> str:
        return self.value


class ValidationState(str, Enum):
    """
    Validity state of a definition.

    UNPARSED -> PARSED -> TYPE_CHECKED -> VALID | INVALID
    """

    UNPARSED = "unparsed"
    PARSED = "parsed"
    TYPE_CHECKED = "type_checked"
    VALID = "valid"
    INVALID = "invalid"

    def __str__(self) -> str:
        return self.value


@dataclass
class LogicValidationIssue:
    """A single problem found in a definition's logic."""

    message: str
    path: List[PathSegment]
    category: IssueCategory
    severity: Severity = Severity.ERROR
    expression: Optional[str] = None
    expected_type: Optional[str] = None
    actual_type: Optional[str] = None
    variable: Optional[str] = None
    position: Optional[int] = None

    def __str__(self) -> str:
        location = ".".join(str(p) for p in self.path) or "<root>"
        return f"[{self.severity.value.upper()}] {location}: {self.message}"

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def with_prefix(self, prefix: Sequence[PathSegment]) -> "LogicValidationIssue":
        """Return a copy with ``prefix`` prepended to the path."""
        return LogicValidationIssue(
            message=self.message,
            path=list(prefix) + list(self.path),
            category=self.category,
            severity=self.severity,
            expression=self.expression,
            expected_type=self.expected_type,
            actual_type=self.actual_type,
            variable=self.variable,
            position=self.position,
        )

    def to_exception(self) -> Union[FormLogicError, UserWarning]:
        """Convert to the matching error or warning class."""
        category = self.category
        if category == IssueCategory.SYNTAX_ERROR:
            return ExpressionSyntaxError(self.message, position=self.position, expression=self.expression, path=self.path)
        if category == IssueCategory.UNKNOWN_VARIABLE and self.variable:
            return UnknownVariableError(self.variable, expression=self.expression, path=self.path)
        if category == IssueCategory.UNKNOWN_FUNCTION and self.variable:
            return UnknownFunctionError(self.variable, expression=self.expression, path=self.path)
        if category == IssueCategory.TYPE_UNKNOWN:
            return TypeUnknownWarning(self.message)
        if category == IssueCategory.CIRCULAR_DEPENDENCY:
            return CircularDependencyWarning(self.message)
        if category in (
            IssueCategory.TYPE_MISMATCH,
            IssueCategory.OPERAND_TYPE_MISMATCH,
            IssueCategory.LOGIC_TYPE_MISMATCH,
        ):
            return TypeMismatchError(
                self.message,
                expected_type=self.expected_type,
                actual_type=self.actual_type,
                expression=self.expression,
                path=self.path,
            )
        return FormLogicError(self.message, expression=self.expression, path=self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting empty optional keys."""
        result: Dict[str, Any] = {
            "message": self.message,
            "path": list(self.path),
            "severity": self.severity.value,
            "category": self.category.value,
        }
        for key in ("expression", "expected_type", "actual_type", "variable", "position"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class LogicValidationOptions:
    """
    Options for logic validation.

    Attributes:
        collect_all_errors: Report every issue (True) or stop at the first (False).
            Defaults to the process config.
        strict: Treat warnings as failures. Defaults to the process config.
    """

    collect_all_errors: Optional[bool] = None
    strict: Optional[bool] = None

    def __post_init__(self):
        config = get_config()
        if self.collect_all_errors is None:
            self.collect_all_errors = config.collect_all_errors
        if self.strict is None:
            self.strict = config.strict


@dataclass
class LogicValidationResult:
    """
    Result of validating a definition's logic.

    ``value`` holds the validated definition when there are no errors.
    """

    valid: bool = True
    issues: List[LogicValidationIssue] = field(default_factory=list)
    state: ValidationState = ValidationState.UNPARSED
    value: Any = None

    def add_issue(self, issue: LogicValidationIssue) -> None:
        """Add an issue. Errors make the result invalid."""
        self.issues.append(issue)
        if issue.is_error:
            self.valid = False

    @property
    def errors(self) -> List[LogicValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[LogicValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def issues_at(self, *path: PathSegment) -> List[LogicValidationIssue]:
        """Issues whose path starts with ``path``."""
        return [i for i in self.issues if tuple(i.path[: len(path)]) == path]

    def raise_for_errors(self) -> None:
        """Raise the first error-severity issue as an exception."""
        for issue in self.issues:
            if issue.is_error:
                raise issue.to_exception()

    def summary(self) -> str:
        """Generate a summary of validation results."""
        status = "PASSED" if self.valid else "FAILED"
        lines = [
            f"Logic validation {status} ({self.state.value})",
            f"  Errors: {len(self.errors)}",
            f"  Warnings: {len(self.warnings)}",
        ]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "valid": self.valid,
            "state": self.state.value,
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "issues": [i.to_dict() for i in self.issues],
        }
