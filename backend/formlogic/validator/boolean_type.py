"""
Boolean-context validation.

Expressions in required, visible, disabled and include slots must evaluate
to a boolean. Decision table:

    inferred boolean                 -> valid
    inferred certain, not boolean    -> invalid, error
    inferred unknown                 -> invalid, warning
"""

from __future__ import annotations

from typing import Mapping, Union

from ..logic.inferred_types import (
    InferredType,
    Severity,
    TypeInferenceResult,
    TypeValidationResult,
)
from ..logic.inferrer import infer_expression_type
from ..logic.parser import parse_expression


def check_boolean_inference(inference: TypeInferenceResult) -> TypeValidationResult:
    """Apply the decision table to an already inferred result."""
    if inference.is_certain and inference.type == InferredType.BOOLEAN:
        return TypeValidationResult(valid=True, actual_type=InferredType.BOOLEAN)

    if inference.is_certain:
        return TypeValidationResult(
            valid=False,
            severity=Severity.ERROR,
            message=f"Expression returns {inference.type.value}, but a boolean is required",
            actual_type=inference.type,
        )

    reason = f" ({inference.reason})" if inference.reason else ""
    return TypeValidationResult(
        valid=False,
        severity=Severity.WARNING,
        message=f"Cannot verify that expression returns a boolean{reason}",
        actual_type=InferredType.UNKNOWN,
    )


def validate_boolean_type(
    expression: Union[str, bool],
    env: Mapping[str, InferredType],
) -> TypeValidationResult:
    """
    Check that an expression provably returns a boolean.

    Args:
        expression: Expression text, or a constant boolean (always valid).
        env: Type environment of the enclosing definition.

    Returns:
        TypeValidationResult; ``expected_type`` is always boolean.

    Example:
        >>> env = {"fields.age.value": InferredType.NUMBER}
        >>> validate_boolean_type("fields.age.value >= 18", env).valid
        True
        >>> validate_boolean_type("fields.age.value + 10", env).severity
        <Severity.ERROR: 'error'>
    """
    if isinstance(expression, bool):
        return TypeValidationResult(valid=True, actual_type=InferredType.BOOLEAN)

    parsed = parse_expression(expression)
    if not parsed.success:
        return TypeValidationResult(
            valid=False,
            severity=Severity.ERROR,
            message=f"Syntax error: {parsed.error}",
        )

    return check_boolean_inference(infer_expression_type(expression, env))
