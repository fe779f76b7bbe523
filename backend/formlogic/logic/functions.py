"""
Built-in functions callable from expressions.

Each function is registered once with its static return type and arity, so
the type inferrer, the design-time validator and the runtime evaluator all
agree on the same table.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .errors import ExpressionEvaluationError
from .inferred_types import InferredType
from .values import ABSENT, describe, is_nullish, is_number

Impl = Callable[..., Any]


@dataclass(frozen=True)
class FunctionSignature:
    """
    A built-in function.

    Attributes:
        name: Name used in expressions.
        return_type: Static result type.
        min_args: Minimum argument count.
        max_args: Maximum argument count, or None for variadic.
        impl: Callable taking (context, *args).
        party_role_arg: True when the first argument names a party role.
    """

    name: str
    return_type: InferredType
    min_args: int
    max_args: Optional[int]
    impl: Impl
    party_role_arg: bool = False

    def accepts(self, count: int) -> bool:
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args

    @property
    def arity_text(self) -> str:
        if self.max_args is None:
            return f"at least {self.min_args}"
        if self.min_args == self.max_args:
            return str(self.min_args)
        return f"{self.min_args} to {self.max_args}"


# -- party functions --------------------------------------------------------

def _parties(context: Any, role: Any) -> Sequence[Any]:
    return context.parties_for(str(role))


def _party_count(context, role):
    return len(_parties(context, role))


def _signed_count(context, role):
    return sum(1 for p in _parties(context, role) if p.signed)


def _all_signed(context, role):
    parties = _parties(context, role)
    return len(parties) > 0 and all(p.signed for p in parties)


def _any_signed(context, role):
    return any(p.signed for p in _parties(context, role))


def _party_type(context, role):
    parties = _parties(context, role)
    return parties[0].type if parties else ""


def _witness_count(context):
    return len(context.witnesses)


def _all_witnesses_signed(context):
    witnesses = context.witnesses
    return len(witnesses) > 0 and all(w.signed for w in witnesses)


def _any_witness_signed(context):
    return any(w.signed for w in context.witnesses)


# -- general helpers --------------------------------------------------------

def _require_string(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ExpressionEvaluationError.type_mismatch("string", describe(value), expression=f"{name}(...)")
    return value


def _require_number(name: str, value: Any) -> Any:
    if not is_number(value):
        raise ExpressionEvaluationError.type_mismatch("number", describe(value), expression=f"{name}(...)")
    return value


def _string_fn(name: str, op: Callable[[str], str]) -> Impl:
    def impl(context, value):
        if is_nullish(value):
            return ABSENT
        return op(_require_string(name, value))
    return impl


def _number_fn(name: str, op: Callable[[Any], Any]) -> Impl:
    def impl(context, value):
        if is_nullish(value):
            return ABSENT
        return op(_require_number(name, value))
    return impl


def _length(context, value):
    if is_nullish(value):
        return 0
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    raise ExpressionEvaluationError.type_mismatch("string or array", describe(value), expression="length(...)")


def _is_empty(context, value):
    if is_nullish(value):
        return True
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) == 0
    return False


def _is_not_empty(context, value):
    return not _is_empty(context, value)


def _contains(context, haystack, needle):
    if is_nullish(haystack):
        return False
    if isinstance(haystack, str):
        return isinstance(needle, str) and needle in haystack
    if isinstance(haystack, (list, tuple)):
        return needle in haystack
    if isinstance(haystack, Mapping):
        return needle in haystack
    raise ExpressionEvaluationError.type_mismatch("string or array", describe(haystack), expression="contains(...)")


def _starts_with(context, value, prefix):
    if is_nullish(value):
        return False
    return _require_string("startsWith", value).startswith(_require_string("startsWith", prefix))


def _ends_with(context, value, suffix):
    if is_nullish(value):
        return False
    return _require_string("endsWith", value).endswith(_require_string("endsWith", suffix))


def _matches(context, value, pattern):
    if is_nullish(value):
        return False
    try:
        return re.search(_require_string("matches", pattern), _require_string("matches", value)) is not None
    except re.error as e:
        raise ExpressionEvaluationError(f"Invalid pattern in matches(): {e}", cause=e)


def _extreme(name: str, pick: Callable[..., Any]) -> Impl:
    def impl(context, *values):
        if any(is_nullish(v) for v in values):
            return ABSENT
        return pick(_require_number(name, v) for v in values)
    return impl


def _coalesce(context, *values):
    for value in values:
        if not is_nullish(value):
            return value
    return ABSENT


def _round(value):
    # Half away from zero, independent of banker's rounding
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


BUILTIN_FUNCTIONS: Dict[str, FunctionSignature] = {
    sig.name: sig
    for sig in (
        # Party functions
        FunctionSignature("partyCount", InferredType.NUMBER, 1, 1, _party_count, party_role_arg=True),
        FunctionSignature("signedCount", InferredType.NUMBER, 1, 1, _signed_count, party_role_arg=True),
        FunctionSignature("allSigned", InferredType.BOOLEAN, 1, 1, _all_signed, party_role_arg=True),
        FunctionSignature("anySigned", InferredType.BOOLEAN, 1, 1, _any_signed, party_role_arg=True),
        FunctionSignature("partyType", InferredType.STRING, 1, 1, _party_type, party_role_arg=True),
        FunctionSignature("witnessCount", InferredType.NUMBER, 0, 0, _witness_count),
        FunctionSignature("allWitnessesSigned", InferredType.BOOLEAN, 0, 0, _all_witnesses_signed),
        FunctionSignature("anyWitnessSigned", InferredType.BOOLEAN, 0, 0, _any_witness_signed),
        # Boolean-returning helpers
        FunctionSignature("contains", InferredType.BOOLEAN, 2, 2, _contains),
        FunctionSignature("startsWith", InferredType.BOOLEAN, 2, 2, _starts_with),
        FunctionSignature("endsWith", InferredType.BOOLEAN, 2, 2, _ends_with),
        FunctionSignature("matches", InferredType.BOOLEAN, 2, 2, _matches),
        FunctionSignature("isEmpty", InferredType.BOOLEAN, 1, 1, _is_empty),
        FunctionSignature("isNotEmpty", InferredType.BOOLEAN, 1, 1, _is_not_empty),
        # String-returning helpers
        FunctionSignature("upper", InferredType.STRING, 1, 1, _string_fn("upper", str.upper)),
        FunctionSignature("lower", InferredType.STRING, 1, 1, _string_fn("lower", str.lower)),
        FunctionSignature("trim", InferredType.STRING, 1, 1, _string_fn("trim", str.strip)),
        # Number-returning helpers
        FunctionSignature("length", InferredType.NUMBER, 1, 1, _length),
        FunctionSignature("abs", InferredType.NUMBER, 1, 1, _number_fn("abs", abs)),
        FunctionSignature("floor", InferredType.NUMBER, 1, 1, _number_fn("floor", math.floor)),
        FunctionSignature("ceil", InferredType.NUMBER, 1, 1, _number_fn("ceil", math.ceil)),
        FunctionSignature("round", InferredType.NUMBER, 1, 1, _number_fn("round", _round)),
        FunctionSignature("min", InferredType.NUMBER, 1, None, _extreme("min", min)),
        FunctionSignature("max", InferredType.NUMBER, 1, None, _extreme("max", max)),
        # Depends on its inputs
        FunctionSignature("coalesce", InferredType.UNKNOWN, 1, None, _coalesce),
    )
}


def get_function(name: str) -> Optional[FunctionSignature]:
    return BUILTIN_FUNCTIONS.get(name)
