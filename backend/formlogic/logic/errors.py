"""
Error taxonomy for the logic engine.

Design-time diagnostics are returned as issues and never raised; each issue
category maps onto one of the classes below (see
``LogicValidationIssue.to_exception``). Runtime evaluation failures raise
``ExpressionEvaluationError`` directly.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

PathSegment = Union[str, int]


class FormLogicError(Exception):
    """Base class for all logic engine errors."""

    def __init__(
        self,
        message: str,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.expression = expression
        self.path: List[PathSegment] = list(path or [])


class ExpressionSyntaxError(FormLogicError):
    """Malformed expression. Always fatal to that expression."""

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ):
        super().__init__(message, expression=expression, path=path)
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"


class UnknownVariableError(FormLogicError):
    """An expression references an undeclared variable path."""

    def __init__(
        self,
        variable: str,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ):
        super().__init__(f'Unknown variable: "{variable}"', expression=expression, path=path)
        self.variable = variable


class UnknownFunctionError(FormLogicError):
    """An expression calls a function that is not registered."""

    def __init__(
        self,
        function: str,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ):
        super().__init__(f'Unknown function: "{function}"', expression=expression, path=path)
        self.function = function


class TypeMismatchError(FormLogicError):
    """An expression provably returns the wrong type for its slot."""

    def __init__(
        self,
        message: str,
        expected_type: Optional[str] = None,
        actual_type: Optional[str] = None,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ):
        super().__init__(message, expression=expression, path=path)
        self.expected_type = expected_type
        self.actual_type = actual_type


class TypeUnknownWarning(UserWarning):
    """The type of an expression in a boolean slot cannot be proven."""


class CircularDependencyWarning(UserWarning):
    """A logic key takes part in a dependency cycle."""


class ExpressionEvaluationError(FormLogicError):
    """Runtime failure while evaluating an expression."""

    def __init__(
        self,
        message: str,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, expression=expression, path=path)
        self.cause = cause

    @classmethod
    def syntax_error(
        cls,
        expression: str,
        error: ExpressionSyntaxError,
        path: Optional[Sequence[PathSegment]] = None,
    ) -> "ExpressionEvaluationError":
        """Wrap a syntax error hit at evaluation time."""
        return cls(
            f'Syntax error in expression "{expression}": {error}',
            expression=expression,
            path=path,
            cause=error,
        )

    @classmethod
    def type_mismatch(
        cls,
        expected: str,
        actual: str,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ) -> "ExpressionEvaluationError":
        """Operand or result has an incompatible concrete type."""
        where = f' in expression "{expression}"' if expression else ""
        return cls(
            f"Type mismatch{where}: expected {expected}, got {actual}",
            expression=expression,
            path=path,
        )

    def with_context(
        self,
        expression: Optional[str] = None,
        path: Optional[Sequence[PathSegment]] = None,
    ) -> "ExpressionEvaluationError":
        """Fill in expression/path when the error was raised deep in a walk."""
        if expression is not None and self.expression is None:
            self.expression = expression
        if path is not None and not self.path:
            self.path = list(path)
        return self
