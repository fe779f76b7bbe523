"""
AST node types for logic expressions.

Nodes are frozen dataclasses so a parsed tree can be shared freely between
validators and concurrent evaluations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple, Union


@dataclass(frozen=True)
class Literal:
    """A boolean, number, string or null literal."""

    value: Any
    position: int = 0


@dataclass(frozen=True)
class VariableRef:
    """A dotted variable path such as ``fields.age.value``."""

    path: str
    position: int = 0


@dataclass(frozen=True)
class UnaryOp:
    """Arithmetic negation (``-x``)."""

    operator: str
    operand: "Node"
    position: int = 0


@dataclass(frozen=True)
class BinaryOp:
    """Arithmetic on two operands."""

    operator: str
    left: "Node"
    right: "Node"
    position: int = 0


@dataclass(frozen=True)
class Comparison:
    """``==``, ``!=``, ``<``, ``<=``, ``>`` or ``>=`` on two operands."""

    operator: str
    left: "Node"
    right: "Node"
    position: int = 0


@dataclass(frozen=True)
class LogicalOp:
    """``and``/``or`` over two or more operands, or ``not`` over one."""

    operator: str
    operands: Tuple["Node", ...]
    position: int = 0


@dataclass(frozen=True)
class FunctionCall:
    """Call of a built-in function, e.g. ``partyCount("buyer")``."""

    name: str
    args: Tuple["Node", ...]
    position: int = 0


Node = Union[Literal, VariableRef, UnaryOp, BinaryOp, Comparison, LogicalOp, FunctionCall]


def iter_children(node: Node) -> Tuple[Node, ...]:
    """Return the direct child nodes of ``node``."""
    if isinstance(node, (BinaryOp, Comparison)):
        return (node.left, node.right)
    if isinstance(node, UnaryOp):
        return (node.operand,)
    if isinstance(node, LogicalOp):
        return node.operands
    if isinstance(node, FunctionCall):
        return node.args
    return ()
