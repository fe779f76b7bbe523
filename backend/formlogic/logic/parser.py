"""
Expression Parser for logic expressions.

Parses condition and logic-key expressions into an AST.

Supported syntax:
    "fields.age.value >= 18"
    "isAdult and not fields.optedOut.value"
    "(fields.price.value * 2) > 100 or partyCount('buyer') == 0"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Set, Tuple

from ..config import get_config
from .errors import ExpressionSyntaxError
from .nodes import (
    BinaryOp,
    Comparison,
    FunctionCall,
    Literal,
    LogicalOp,
    Node,
    UnaryOp,
    VariableRef,
    iter_children,
)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one expression. Never raised, always returned."""

    success: bool
    expression: str
    ast: Optional[Node] = None
    variables: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    error: Optional[str] = None
    position: Optional[int] = None

    def to_syntax_error(self) -> Optional[ExpressionSyntaxError]:
        """The failure as an exception, or None for a successful parse."""
        if self.success:
            return None
        return ExpressionSyntaxError(
            self.error or "Invalid expression",
            position=self.position,
            expression=self.expression,
        )


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    position: int


# Token kinds
NUMBER = "NUMBER"
STRING = "STRING"
NAME = "NAME"
KEYWORD = "KEYWORD"
OP = "OP"
EOF = "EOF"

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.(?:[A-Za-z_][A-Za-z0-9_]*|\d+))*")

# Longest operators first so ">=" wins over ">"
_OPERATORS = ("==", "!=", ">=", "<=", "&&", "||", ">", "<", "+", "-", "*", "/", "!", "(", ")", ",")

KEYWORDS = {"and", "or", "not", "true", "false", "null"}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


def tokenize(text: str) -> List[Token]:
    """
    Split an expression into tokens.

    Raises:
        ExpressionSyntaxError: On characters that cannot start a token or on
            an unterminated string literal.
    """
    tokens: List[Token] = []
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if char.isspace():
            i += 1
            continue

        if char in ("'", '"'):
            start = i
            value, i = _read_string(text, start)
            tokens.append(Token(STRING, value, start))
            continue

        match = _NUMBER_RE.match(text, i)
        if match:
            raw = match.group(0)
            value = float(raw) if "." in raw else int(raw)
            tokens.append(Token(NUMBER, value, i))
            i = match.end()
            continue

        match = _NAME_RE.match(text, i)
        if match:
            raw = match.group(0)
            if "." not in raw and raw.lower() in KEYWORDS:
                tokens.append(Token(KEYWORD, raw.lower(), i))
            else:
                tokens.append(Token(NAME, raw, i))
            i = match.end()
            continue

        for op in _OPERATORS:
            if text.startswith(op, i):
                tokens.append(Token(OP, op, i))
                i += len(op)
                break
        else:
            if char == "=":
                raise ExpressionSyntaxError(
                    "Unexpected '=' (use '==' for comparison)", position=i, expression=text
                )
            raise ExpressionSyntaxError(
                f"Unexpected character '{char}'", position=i, expression=text
            )

    tokens.append(Token(EOF, None, length))
    return tokens


def _read_string(text: str, start: int) -> Tuple[str, int]:
    """Read a quoted string starting at ``start``. Returns (value, next index)."""
    quote = text[start]
    chars: List[str] = []
    i = start + 1
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            chars.append(_ESCAPES.get(text[i + 1], text[i + 1]))
            i += 2
            continue
        if char == quote:
            return "".join(chars), i + 1
        chars.append(char)
        i += 1
    raise ExpressionSyntaxError("Unterminated string literal", position=start, expression=text)


class ExpressionParser:
    """
    Recursive-descent parser for logic expressions.

    Precedence, lowest first: ``or``, ``and``, ``not``, comparison,
    ``+``/``-``, ``*``/``/``, unary minus, primary. Comparisons do not chain.
    """

    COMPARISON_OPS = {"==", "!=", ">", ">=", "<", "<="}
    ADDITIVE_OPS = {"+", "-"}
    MULTIPLICATIVE_OPS = {"*", "/"}

    # Symbolic aliases for the logical keywords
    LOGICAL_ALIASES = {"&&": "and", "||": "or", "!": "not"}

    def __init__(
        self,
        max_length: Optional[int] = None,
        max_depth: Optional[int] = None,
    ):
        config = get_config()
        self.max_length = max_length if max_length is not None else config.max_expression_length
        self.max_depth = max_depth if max_depth is not None else config.max_nesting_depth
        self._text = ""
        self._tokens: List[Token] = []
        self._index = 0
        self._depth = 0

    def parse(self, expression: str) -> Node:
        """
        Parse an expression into an AST.

        Args:
            expression: The expression to parse.

        Returns:
            Root node of the AST.

        Raises:
            ExpressionSyntaxError: If the expression is malformed.
        """
        if not isinstance(expression, str):
            raise ExpressionSyntaxError(
                f"Expected string expression, got {type(expression).__name__}", position=0
            )

        if not expression.strip():
            raise ExpressionSyntaxError("Empty expression", position=0, expression=expression)

        if len(expression) > self.max_length:
            raise ExpressionSyntaxError(
                f"Expression is longer than {self.max_length} characters",
                position=self.max_length,
                expression=expression,
            )

        self._text = expression
        self._tokens = tokenize(expression)
        self._index = 0
        self._depth = 0

        node = self._parse_or()
        token = self._peek()
        if token.kind != EOF:
            raise self._error(f"Unexpected token '{token.value}'", token)
        return node

    def validate(self, expression: str) -> Tuple[bool, Optional[str]]:
        """
        Validate an expression's syntax.

        Returns:
            Tuple of (is_valid, error_message).
        """
        try:
            self.parse(expression)
            return True, None
        except ExpressionSyntaxError as e:
            return False, str(e)

    # -- token helpers ----------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind != EOF:
            self._index += 1
        return token

    def _error(self, message: str, token: Token) -> ExpressionSyntaxError:
        if token.kind == EOF:
            message = "Unexpected end of expression"
        return ExpressionSyntaxError(message, position=token.position, expression=self._text)

    def _is_op(self, token: Token, *ops: str) -> bool:
        return token.kind == OP and token.value in ops

    def _logical(self, token: Token) -> Optional[str]:
        """Return 'and'/'or'/'not' if the token spells one, else None."""
        if token.kind == KEYWORD and token.value in ("and", "or", "not"):
            return token.value
        if token.kind == OP and token.value in self.LOGICAL_ALIASES:
            return self.LOGICAL_ALIASES[token.value]
        return None

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > self.max_depth:
            raise ExpressionSyntaxError(
                f"Expression is nested too deeply (max {self.max_depth} levels)",
                position=token.position,
                expression=self._text,
            )

    def _leave(self) -> None:
        self._depth -= 1

    # -- grammar ----------------------------------------------------------

    def _parse_or(self) -> Node:
        """Parse OR expressions."""
        first = self._parse_and()
        operands = [first]
        while self._logical(self._peek()) == "or":
            self._advance()
            operands.append(self._parse_and())
        if len(operands) == 1:
            return first
        return LogicalOp("or", tuple(operands), _position(first))

    def _parse_and(self) -> Node:
        """Parse AND expressions."""
        first = self._parse_not()
        operands = [first]
        while self._logical(self._peek()) == "and":
            self._advance()
            operands.append(self._parse_not())
        if len(operands) == 1:
            return first
        return LogicalOp("and", tuple(operands), _position(first))

    def _parse_not(self) -> Node:
        """Parse NOT expressions."""
        token = self._peek()
        if self._logical(token) == "not":
            self._advance()
            self._enter(token)
            operand = self._parse_not()
            self._leave()
            return LogicalOp("not", (operand,), token.position)
        return self._parse_comparison()

    def _parse_comparison(self) -> Node:
        """Parse comparison expressions."""
        left = self._parse_additive()
        token = self._peek()
        if self._is_op(token, *self.COMPARISON_OPS):
            self._advance()
            right = self._parse_additive()
            following = self._peek()
            if self._is_op(following, *self.COMPARISON_OPS):
                raise self._error("Chained comparisons are not supported", following)
            return Comparison(token.value, left, right, token.position)
        return left

    def _parse_additive(self) -> Node:
        node = self._parse_term()
        while self._is_op(self._peek(), *self.ADDITIVE_OPS):
            token = self._advance()
            node = BinaryOp(token.value, node, self._parse_term(), token.position)
        return node

    def _parse_term(self) -> Node:
        node = self._parse_unary()
        while self._is_op(self._peek(), *self.MULTIPLICATIVE_OPS):
            token = self._advance()
            node = BinaryOp(token.value, node, self._parse_unary(), token.position)
        return node

    def _parse_unary(self) -> Node:
        token = self._peek()
        if self._is_op(token, "-"):
            self._advance()
            self._enter(token)
            operand = self._parse_unary()
            self._leave()
            # Fold negative number literals
            if isinstance(operand, Literal) and _is_number(operand.value):
                return Literal(-operand.value, token.position)
            return UnaryOp("-", operand, token.position)
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        """Parse a value (literal, variable, function call or group)."""
        token = self._advance()

        if token.kind in (NUMBER, STRING):
            return Literal(token.value, token.position)

        if token.kind == KEYWORD:
            if token.value == "true":
                return Literal(True, token.position)
            if token.value == "false":
                return Literal(False, token.position)
            if token.value == "null":
                return Literal(None, token.position)
            raise self._error(f"Unexpected keyword '{token.value}'", token)

        if token.kind == NAME:
            if self._is_op(self._peek(), "("):
                if "." in token.value:
                    raise self._error(
                        f"'{token.value}' is not a function; only built-in functions can be called",
                        token,
                    )
                return self._parse_call(token)
            return VariableRef(token.value, token.position)

        if self._is_op(token, "("):
            self._enter(token)
            node = self._parse_or()
            self._leave()
            closing = self._advance()
            if not self._is_op(closing, ")"):
                raise self._error("Expected ')'", closing)
            return node

        raise self._error(f"Unexpected token '{token.value}'", token)

    def _parse_call(self, name: Token) -> Node:
        """Parse a function call's argument list."""
        opening = self._advance()
        self._enter(opening)
        args: List[Node] = []
        if self._is_op(self._peek(), ")"):
            self._advance()
        else:
            while True:
                args.append(self._parse_or())
                token = self._advance()
                if self._is_op(token, ")"):
                    break
                if not self._is_op(token, ","):
                    raise self._error("Expected ',' or ')' in argument list", token)
        self._leave()
        return FunctionCall(name.value, tuple(args), name.position)


def _position(node: Node) -> int:
    return getattr(node, "position", 0)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _walk(node: Node, variables: Dict[str, None], functions: Dict[str, None]) -> None:
    if isinstance(node, VariableRef):
        variables.setdefault(node.path, None)
    elif isinstance(node, FunctionCall):
        functions.setdefault(node.name, None)
    for child in iter_children(node):
        _walk(child, variables, functions)


def collect_variables(node: Node) -> Set[str]:
    """Return every variable path referenced in ``node``. Function names are excluded."""
    variables: Dict[str, None] = {}
    _walk(node, variables, {})
    return set(variables)


def collect_functions(node: Node) -> Set[str]:
    """Return the names of every function called in ``node``."""
    functions: Dict[str, None] = {}
    _walk(node, {}, functions)
    return set(functions)


@lru_cache(maxsize=4096)
def _parse_cached(expression: str, max_length: int, max_depth: int) -> ParseResult:
    parser = ExpressionParser(max_length=max_length, max_depth=max_depth)
    try:
        ast = parser.parse(expression)
    except ExpressionSyntaxError as e:
        return ParseResult(
            success=False,
            expression=expression,
            error=e.message,
            position=e.position,
        )
    variables: Dict[str, None] = {}
    functions: Dict[str, None] = {}
    _walk(ast, variables, functions)
    return ParseResult(
        success=True,
        expression=expression,
        ast=ast,
        variables=tuple(variables),
        functions=tuple(functions),
    )


def parse_expression(expression: str) -> ParseResult:
    """
    Parse an expression and extract its referenced variables.

    Pure and memoized; malformed input yields ``success=False`` with an
    error message and character offset instead of raising.

    Example:
        >>> parse_expression("fields.age.value >= 18").variables
        ('fields.age.value',)
    """
    if not isinstance(expression, str):
        return ParseResult(
            success=False,
            expression=str(expression),
            error=f"Expected string expression, got {type(expression).__name__}",
            position=0,
        )
    config = get_config()
    return _parse_cached(expression, config.max_expression_length, config.max_nesting_depth)
