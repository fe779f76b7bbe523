"""
Static type inference for logic expressions.

Infers the result type of an expression from a type environment without
executing it. Inference never stops at the first problem: every branch is
visited so all unresolved variables and bad arithmetic operands in one
expression surface together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .functions import BUILTIN_FUNCTIONS, FunctionSignature
from .inferred_types import InferredType, OperandProblem, TypeConfidence, TypeInferenceResult
from .nodes import BinaryOp, Comparison, FunctionCall, Literal, LogicalOp, Node, UnaryOp, VariableRef
from .parser import parse_expression


@dataclass
class _Walk:
    """Findings accumulated over one inference pass."""

    reasons: List[str] = field(default_factory=list)
    unresolved: Dict[str, None] = field(default_factory=dict)
    operand_problems: List[OperandProblem] = field(default_factory=list)

    def note(self, reason: str) -> None:
        if reason not in self.reasons:
            self.reasons.append(reason)


class TypeInferrer:
    """
    Bottom-up type inferrer.

    Rules:
        Literal      -> its own type, certain
        VariableRef  -> environment type, or unknown if not declared
        Comparison   -> boolean, certain
        Arithmetic   -> number, certain
        and/or/not   -> boolean if every operand is certain, else unknown
        Function     -> registered return type
    """

    def __init__(self, functions: Optional[Mapping[str, FunctionSignature]] = None):
        self.functions = functions if functions is not None else BUILTIN_FUNCTIONS

    def infer(self, node: Node, env: Mapping[str, InferredType]) -> TypeInferenceResult:
        """
        Infer the result type of a parsed expression.

        Args:
            node: Root of the AST.
            env: Variable path -> type. ``UNKNOWN`` entries are declared
                variables whose type could not be determined.

        Returns:
            TypeInferenceResult with every unresolved path and operand problem.
        """
        walk = _Walk()
        type_, certain = self._infer(node, env, walk)
        return TypeInferenceResult(
            type=type_ if certain else InferredType.UNKNOWN,
            confidence=TypeConfidence.CERTAIN if certain else TypeConfidence.UNKNOWN,
            reason=None if certain else (walk.reasons[0] if walk.reasons else None),
            unresolved=tuple(walk.unresolved),
            operand_problems=tuple(walk.operand_problems),
        )

    def _infer(self, node: Node, env: Mapping[str, InferredType], walk: _Walk) -> Tuple[InferredType, bool]:
        if isinstance(node, Literal):
            return _literal_type(node.value), True

        if isinstance(node, VariableRef):
            if node.path not in env:
                walk.unresolved.setdefault(node.path, None)
                walk.note("unresolved variable")
                return InferredType.UNKNOWN, False
            type_ = env[node.path]
            if type_ == InferredType.UNKNOWN:
                walk.note(f"type of '{node.path}' could not be inferred")
                return InferredType.UNKNOWN, False
            return type_, True

        if isinstance(node, Comparison):
            self._infer(node.left, env, walk)
            self._infer(node.right, env, walk)
            return InferredType.BOOLEAN, True

        if isinstance(node, BinaryOp):
            for operand in (node.left, node.right):
                self._check_numeric(node.operator, operand, env, walk)
            return InferredType.NUMBER, True

        if isinstance(node, UnaryOp):
            self._check_numeric(node.operator, node.operand, env, walk)
            return InferredType.NUMBER, True

        if isinstance(node, LogicalOp):
            # Visit every operand, even after one fails
            results = [self._infer(operand, env, walk) for operand in node.operands]
            if all(certain for _, certain in results):
                return InferredType.BOOLEAN, True
            return InferredType.UNKNOWN, False

        if isinstance(node, FunctionCall):
            args = [self._infer(arg, env, walk) for arg in node.args]
            signature = self.functions.get(node.name)
            if signature is None:
                walk.note(f"unknown function '{node.name}'")
                return InferredType.UNKNOWN, False
            if signature.return_type != InferredType.UNKNOWN:
                return signature.return_type, True
            # coalesce-like functions take the type their arguments agree on
            types = {type_ for type_, certain in args if certain and type_ != InferredType.NULL}
            if args and all(certain for _, certain in args) and len(types) == 1:
                return types.pop(), True
            walk.note(f"result type of '{node.name}' depends on its arguments")
            return InferredType.UNKNOWN, False

        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _check_numeric(self, operator: str, operand: Node, env: Mapping[str, InferredType], walk: _Walk) -> None:
        type_, certain = self._infer(operand, env, walk)
        if certain and type_ not in (InferredType.NUMBER, InferredType.NULL):
            walk.operand_problems.append(
                OperandProblem(operator=operator, operand_type=type_, position=getattr(operand, "position", 0))
            )


def _literal_type(value: object) -> InferredType:
    if value is None:
        return InferredType.NULL
    if isinstance(value, bool):
        return InferredType.BOOLEAN
    if isinstance(value, (int, float)):
        return InferredType.NUMBER
    return InferredType.STRING


_default_inferrer = TypeInferrer()


def infer_expression_type(expression: str, env: Mapping[str, InferredType]) -> TypeInferenceResult:
    """
    Parse and infer an expression string.

    Malformed expressions infer to unknown with the syntax error as reason.

    Example:
        >>> infer_expression_type("fields.age.value + 10", {"fields.age.value": InferredType.NUMBER}).type
        <InferredType.NUMBER: 'number'>
    """
    result = parse_expression(expression)
    if not result.success:
        return TypeInferenceResult.unknown(f"syntax error: {result.error}")
    return _default_inferrer.infer(result.ast, env)
