"""
Expression Evaluator for logic expressions.

Evaluates parsed expressions against an evaluation context. Runtime
semantics match what the type inferrer assumes:

- comparisons always return bool;
- arithmetic returns a number or raises ``ExpressionEvaluationError``,
  including when an operand is missing or null;
- ``and``/``or``/``not`` always return bool.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence, Union

from .errors import ExpressionEvaluationError
from .functions import BUILTIN_FUNCTIONS, FunctionSignature
from .nodes import BinaryOp, Comparison, FunctionCall, Literal, LogicalOp, Node, UnaryOp, VariableRef
from .parser import parse_expression
from .values import describe, is_nullish, is_number, truthy

Expression = Union[str, Node]


class ExpressionEvaluator:
    """
    Evaluator for parsed logic expressions.

    The context must provide ``resolve(path)`` returning the value at a
    variable path (``ABSENT`` when missing), plus ``parties_for(role)`` and
    ``witnesses`` for the party functions.
    """

    def __init__(self, functions: Optional[Mapping[str, FunctionSignature]] = None):
        self.functions = functions if functions is not None else BUILTIN_FUNCTIONS

    def evaluate(self, expression: Expression, context: Any) -> Any:
        """
        Evaluate an expression against a context.

        Args:
            expression: Expression text or a parsed AST.
            context: The evaluation context.

        Returns:
            The concrete value, or ``ABSENT``.

        Raises:
            ExpressionEvaluationError: On a syntax error or incompatible operands.
        """
        node, text = self._compile(expression)
        try:
            return self._eval(node, context)
        except ExpressionEvaluationError as e:
            raise e.with_context(expression=text)

    def evaluate_boolean(self, expression: Expression, context: Any) -> bool:
        """
        Evaluate an expression that must produce a boolean.

        ``ABSENT`` and null count as ``False``; any other non-boolean
        result raises rather than being coerced.
        """
        value = self.evaluate(expression, context)
        if isinstance(value, bool):
            return value
        if is_nullish(value):
            return False
        text = expression if isinstance(expression, str) else None
        raise ExpressionEvaluationError.type_mismatch("boolean", describe(value), expression=text)

    def evaluate_condition(self, condition: Union[bool, str, None], context: Any, default: bool) -> bool:
        """Evaluate an optional condition slot; ``None`` means ``default``."""
        if condition is None:
            return default
        if isinstance(condition, bool):
            return condition
        return self.evaluate_boolean(condition, context)

    def _compile(self, expression: Expression):
        if not isinstance(expression, str):
            return expression, None
        result = parse_expression(expression)
        if not result.success:
            raise ExpressionEvaluationError.syntax_error(expression, result.to_syntax_error())
        return result.ast, expression

    # -- tree walk ----------------------------------------------------------

    def _eval(self, node: Node, context: Any) -> Any:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, VariableRef):
            return context.resolve(node.path)

        if isinstance(node, Comparison):
            left = self._eval(node.left, context)
            right = self._eval(node.right, context)
            return compare(node.operator, left, right)

        if isinstance(node, BinaryOp):
            left = self._eval(node.left, context)
            right = self._eval(node.right, context)
            return arithmetic(node.operator, left, right)

        if isinstance(node, UnaryOp):
            operand = self._eval(node.operand, context)
            _require_operand(node.operator, operand)
            return -operand

        if isinstance(node, LogicalOp):
            if node.operator == "not":
                return not truthy(self._eval(node.operands[0], context))
            if node.operator == "and":
                return all(truthy(self._eval(operand, context)) for operand in node.operands)
            return any(truthy(self._eval(operand, context)) for operand in node.operands)

        if isinstance(node, FunctionCall):
            return self._call(node, context)

        raise ExpressionEvaluationError(f"Unknown node type: {type(node).__name__}")

    def _call(self, node: FunctionCall, context: Any) -> Any:
        signature = self.functions.get(node.name)
        if signature is None:
            raise ExpressionEvaluationError(f'Unknown function: "{node.name}"')
        if not signature.accepts(len(node.args)):
            raise ExpressionEvaluationError(
                f"{node.name}() takes {signature.arity_text} argument(s), got {len(node.args)}"
            )
        args = [self._eval(arg, context) for arg in node.args]
        if signature.party_role_arg and not isinstance(args[0], str):
            raise ExpressionEvaluationError.type_mismatch("party role string", describe(args[0]))
        try:
            return signature.impl(context, *args)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ExpressionEvaluationError(f"{node.name}() failed: {e}", cause=e)


def values_equal(left: Any, right: Any) -> bool:
    """
    Structural equality.

    Absent and null only equal each other; booleans never equal numbers;
    mappings and sequences compare element-wise.
    """
    if is_nullish(left) or is_nullish(right):
        return is_nullish(left) and is_nullish(right)
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[k], right[k]) for k in left)
    if _is_sequence(left) and _is_sequence(right):
        return len(left) == len(right) and all(values_equal(a, b) for a, b in zip(left, right))
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right) and not (isinstance(left, str) and isinstance(right, str)):
        return False
    return left == right


def compare(operator: str, left: Any, right: Any) -> bool:
    """Apply a comparison operator. Never raises."""
    if operator == "==":
        return values_equal(left, right)
    if operator == "!=":
        return not values_equal(left, right)
    if not _orderable(left, right):
        return False
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    raise ExpressionEvaluationError(f"Unknown comparison operator '{operator}'")


def arithmetic(operator: str, left: Any, right: Any) -> Any:
    """
    Apply an arithmetic operator.

    Raises:
        ExpressionEvaluationError: If an operand is missing, null or not a
            number, or on division by zero.
    """
    for operand in (left, right):
        _require_operand(operator, operand)
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if operator == "/":
        if right == 0:
            raise ExpressionEvaluationError("Division by zero")
        return left / right
    raise ExpressionEvaluationError(f"Unknown arithmetic operator '{operator}'")


def _require_operand(operator: str, operand: Any) -> None:
    if is_nullish(operand):
        raise ExpressionEvaluationError(f"Operand of '{operator}' is {describe(operand)}")
    if not is_number(operand):
        raise ExpressionEvaluationError.type_mismatch("number", describe(operand))


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str)


def _orderable(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return True
    if isinstance(left, str) and isinstance(right, str):
        return True
    if isinstance(left, datetime) and isinstance(right, datetime):
        # Naive and aware datetimes do not order
        return (left.tzinfo is None) == (right.tzinfo is None)
    if isinstance(left, date) and isinstance(right, date):
        return not isinstance(left, datetime) and not isinstance(right, datetime)
    return False
