"""
Tests for the runtime expression evaluator and built-in functions.
"""

from datetime import date, datetime, timezone
from types import MappingProxyType

import pytest

from backend.formlogic.logic.errors import ExpressionEvaluationError, ExpressionSyntaxError
from backend.formlogic.logic.evaluator import ExpressionEvaluator, arithmetic, compare, values_equal
from backend.formlogic.logic.values import ABSENT, describe, is_absent, is_nullish, truthy
from backend.formlogic.models import Form
from backend.formlogic.runtime.context import EvaluationContext


FORM = Form(
    fields={
        "age": {"type": "number"},
        "name": {"type": "text"},
        "flag": {"type": "boolean"},
        "tags": {"type": "multiselect"},
        "rent": {"type": "money"},
        "start": {"type": "date"},
        "end": {"type": "date"},
    },
    parties={"buyer": {}, "seller": {}},
)


def context(**fields):
    """Build an evaluation context over FORM with the given field values."""
    return EvaluationContext.for_form(FORM, {"fields": fields})


def evaluate(expression, **fields):
    return ExpressionEvaluator().evaluate(expression, context(**fields))


class TestValues:
    """Tests for the ABSENT sentinel and value helpers."""

    def test_absent_is_falsy_singleton(self):
        """Test ABSENT identity and truthiness."""
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"
        assert is_absent(ABSENT)
        assert not is_absent(None)

    def test_nullish(self):
        """Test that ABSENT and None are nullish but falsy values are not."""
        assert is_nullish(ABSENT) and is_nullish(None)
        assert not is_nullish(0)
        assert not is_nullish("")
        assert not is_nullish(False)

    def test_truthy(self):
        """Test truthiness used by logical operators."""
        assert truthy("x") is True
        assert truthy(0) is False
        assert truthy(()) is False
        assert truthy(ABSENT) is False

    def test_describe(self):
        """Test type names used in error messages."""
        assert describe(ABSENT) == "absent"
        assert describe(True) == "boolean"
        assert describe(1.5) == "number"
        assert describe(("a",)) == "array"
        assert describe(date(2024, 1, 1)) == "date"


class TestComparison:
    """Tests for comparison semantics."""

    def test_ordering_numbers(self):
        """Test numeric ordering."""
        assert evaluate("fields.age.value >= 18", age=20) is True
        assert evaluate("fields.age.value >= 18", age=16) is False

    def test_ordering_with_absent_is_false(self):
        """Test that ordering against a missing value is false, not an error."""
        assert evaluate("fields.age.value >= 18") is False
        assert evaluate("fields.age.value < 18") is False

    def test_ordering_mismatched_types_is_false(self):
        """Test ordering a string against a number."""
        assert evaluate("fields.name.value > 1", name="b") is False

    def test_ordering_strings(self):
        """Test lexicographic string ordering."""
        assert evaluate("fields.name.value > 'a'", name="b") is True

    def test_ordering_dates(self):
        """Test date ordering."""
        assert evaluate("fields.start.value < fields.end.value", start=date(2024, 1, 1), end=date(2024, 6, 1)) is True

    def test_naive_and_aware_datetimes_do_not_order(self):
        """Test mixed tz-awareness ordering is false."""
        naive = datetime(2024, 1, 1)
        aware = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert compare("<", naive, aware) is False

    def test_null_equals_absent(self):
        """Test that a missing value equals null."""
        assert evaluate("fields.age.value == null") is True
        assert evaluate("fields.age.value == 0") is False
        assert evaluate("fields.age.value != null", age=0) is True

    def test_boolean_never_equals_number(self):
        """Test that true is not equal to 1."""
        assert evaluate("fields.flag.value == 1", flag=True) is False
        assert evaluate("fields.flag.value == true", flag=True) is True

    def test_structural_equality(self):
        """Test arrays and mappings compare element-wise."""
        assert values_equal({"a": [1, 2]}, MappingProxyType({"a": (1, 2)})) is True
        assert values_equal([1, 2], [2, 1]) is False
        assert evaluate("fields.tags.value == fields.tags.value", tags=["a"]) is True

    def test_int_float_equal(self):
        """Test numeric equality across int and float."""
        assert values_equal(1, 1.0) is True


class TestArithmetic:
    """Tests for arithmetic semantics."""

    def test_addition(self):
        """Test plain arithmetic."""
        assert evaluate("fields.age.value + 10", age=5) == 15

    def test_precedence(self):
        """Test that multiplication binds tighter."""
        assert evaluate("1 + 2 * 3") == 7

    def test_division_is_true_division(self):
        """Test '/' on integers."""
        assert evaluate("7 / 2") == 3.5

    def test_missing_operand_raises(self):
        """Test arithmetic on a missing or null value raises."""
        with pytest.raises(ExpressionEvaluationError, match="Operand of '\\+' is absent") as exc_info:
            evaluate("fields.age.value + 10")
        assert exc_info.value.expression == "fields.age.value + 10"
        with pytest.raises(ExpressionEvaluationError, match="is null"):
            arithmetic("*", None, 3)
        with pytest.raises(ExpressionEvaluationError):
            evaluate("fields.age.value * null", age=2)

    def test_negation(self):
        """Test unary minus."""
        assert evaluate("-fields.age.value", age=5) == -5
        with pytest.raises(ExpressionEvaluationError, match="is absent"):
            evaluate("-fields.age.value")

    def test_non_number_operand_raises(self):
        """Test a string operand raises instead of coercing."""
        with pytest.raises(ExpressionEvaluationError) as exc_info:
            evaluate("fields.name.value + 1", name="x")
        assert "expected number, got string" in exc_info.value.message
        assert exc_info.value.expression == "fields.name.value + 1"

    def test_boolean_operand_raises(self):
        """Test booleans are not numbers."""
        with pytest.raises(ExpressionEvaluationError):
            evaluate("fields.flag.value + 1", flag=True)

    def test_non_number_beside_null_raises(self):
        """Test a present non-number raises even next to a missing value."""
        with pytest.raises(ExpressionEvaluationError):
            evaluate("fields.name.value + fields.age.value", name="x")

    def test_division_by_zero(self):
        """Test division by zero raises."""
        with pytest.raises(ExpressionEvaluationError, match="Division by zero"):
            evaluate("fields.age.value / 0", age=4)


class TestLogical:
    """Tests for and/or/not."""

    def test_results_are_booleans(self):
        """Test that logical operators return bool, not operands."""
        assert evaluate("fields.name.value and fields.age.value", name="x", age=3) is True
        assert evaluate("fields.name.value or fields.age.value") is False

    def test_not_absent(self):
        """Test negating a missing value."""
        assert evaluate("not fields.name.value") is True


class TestEvaluateBoolean:
    """Tests for boolean-context evaluation."""

    def test_boolean_result(self):
        """Test a comparison in a boolean slot."""
        evaluator = ExpressionEvaluator()
        assert evaluator.evaluate_boolean("fields.age.value > 1", context(age=2)) is True

    def test_absent_is_false(self):
        """Test a missing value in a boolean slot."""
        evaluator = ExpressionEvaluator()
        assert evaluator.evaluate_boolean("fields.flag.value", context()) is False

    def test_non_boolean_raises(self):
        """Test a number in a boolean slot is rejected rather than coerced."""
        evaluator = ExpressionEvaluator()
        with pytest.raises(ExpressionEvaluationError, match="expected boolean, got number"):
            evaluator.evaluate_boolean("fields.age.value", context(age=5))

    def test_syntax_error_raises(self):
        """Test malformed text is reported with its syntax error."""
        evaluator = ExpressionEvaluator()
        with pytest.raises(ExpressionEvaluationError) as exc_info:
            evaluator.evaluate_boolean("fields.age.value >", context())
        assert isinstance(exc_info.value.cause, ExpressionSyntaxError)
        assert "Syntax error" in exc_info.value.message

    def test_condition_defaults(self):
        """Test unset and constant condition slots."""
        evaluator = ExpressionEvaluator()
        ctx = context()
        assert evaluator.evaluate_condition(None, ctx, True) is True
        assert evaluator.evaluate_condition(None, ctx, False) is False
        assert evaluator.evaluate_condition(False, ctx, True) is False


class TestStructuredValues:
    """Tests for sub-property access."""

    def test_money_amount(self):
        """Test reading a structured field property."""
        assert evaluate("fields.rent.value.amount > 100", rent={"amount": 150, "currency": "USD"}) is True

    def test_missing_property(self):
        """Test a missing property is absent."""
        assert evaluate("fields.rent.value.amount", rent={"currency": "USD"}) is ABSENT

    def test_array_index(self):
        """Test numeric path segments index into arrays."""
        assert evaluate("fields.tags.value.1", tags=["a", "b"]) == "b"
        assert evaluate("fields.tags.value.5", tags=["a"]) is ABSENT


class TestFunctions:
    """Tests for built-in functions."""

    def test_collection_helpers(self):
        """Test contains, length and emptiness checks."""
        assert evaluate("contains(fields.tags.value, 'a')", tags=["a", "b"]) is True
        assert evaluate("contains(fields.tags.value, 'a')") is False
        assert evaluate("length(fields.tags.value)", tags=["a", "b"]) == 2
        assert evaluate("isEmpty(fields.tags.value)") is True
        assert evaluate("isNotEmpty(fields.name.value)", name="x") is True

    def test_string_helpers(self):
        """Test string functions."""
        assert evaluate("upper(fields.name.value)", name="abc") == "ABC"
        assert evaluate("trim(fields.name.value)", name="  a ") == "a"
        assert evaluate("startsWith(fields.name.value, 'ab')", name="abc") is True
        assert evaluate("endsWith(fields.name.value, 'bc')", name="abc") is True
        assert evaluate("matches(fields.name.value, '^a')", name="abc") is True
        assert evaluate("lower(fields.name.value)") is ABSENT

    def test_number_helpers(self):
        """Test numeric functions."""
        assert evaluate("round(2.5)") == 3
        assert evaluate("round(-2.5)") == -3
        assert evaluate("floor(2.7)") == 2
        assert evaluate("ceil(2.1)") == 3
        assert evaluate("abs(-4)") == 4
        assert evaluate("min(3, 1, 2)") == 1
        assert evaluate("max(fields.age.value, 1)") is ABSENT

    def test_coalesce(self):
        """Test coalesce returns the first present value."""
        assert evaluate("coalesce(fields.age.value, 7)") == 7
        assert evaluate("coalesce(fields.age.value, 7)", age=0) == 0

    def test_wrong_argument_type_raises(self):
        """Test helpers reject arguments of the wrong type."""
        with pytest.raises(ExpressionEvaluationError):
            evaluate("upper(fields.age.value)", age=3)

    def test_invalid_pattern(self):
        """Test a malformed regular expression."""
        with pytest.raises(ExpressionEvaluationError, match="Invalid pattern"):
            evaluate("matches(fields.name.value, '(')", name="x")

    def test_unknown_function(self):
        """Test calling an unregistered function."""
        with pytest.raises(ExpressionEvaluationError, match="Unknown function"):
            evaluate("nope(1)")

    def test_wrong_arity(self):
        """Test calling with too few arguments."""
        with pytest.raises(ExpressionEvaluationError, match="takes 2 argument"):
            evaluate("contains('a')")


class TestPartyFunctions:
    """Tests for party and witness functions."""

    def get_party_context(self):
        return EvaluationContext.for_form(FORM, {
            "parties": {
                "buyer": [
                    {"type": "person", "signature": {"signedAt": "2024-01-01"}},
                    {"type": "person"},
                ],
                "seller": {"type": "organization", "signature": {"signedAt": "2024-01-02"}},
            },
            "witnesses": [{"type": "person", "signed": True}],
        })

    def test_counts(self):
        """Test party and signature counts."""
        evaluator = ExpressionEvaluator()
        ctx = self.get_party_context()
        assert evaluator.evaluate("partyCount('buyer')", ctx) == 2
        assert evaluator.evaluate("signedCount('buyer')", ctx) == 1
        assert evaluator.evaluate("partyCount('seller')", ctx) == 1
        assert evaluator.evaluate("witnessCount()", ctx) == 1

    def test_signature_checks(self):
        """Test all/any signed."""
        evaluator = ExpressionEvaluator()
        ctx = self.get_party_context()
        assert evaluator.evaluate("allSigned('buyer')", ctx) is False
        assert evaluator.evaluate("anySigned('buyer')", ctx) is True
        assert evaluator.evaluate("allSigned('seller')", ctx) is True
        assert evaluator.evaluate("allWitnessesSigned()", ctx) is True
        assert evaluator.evaluate("anyWitnessSigned()", ctx) is True

    def test_party_type(self):
        """Test the type of the first party in a role."""
        evaluator = ExpressionEvaluator()
        ctx = self.get_party_context()
        assert evaluator.evaluate("partyType('seller')", ctx) == "organization"

    def test_missing_role(self):
        """Test a role with no parties."""
        evaluator = ExpressionEvaluator()
        ctx = context()
        assert evaluator.evaluate("partyCount('buyer')", ctx) == 0
        assert evaluator.evaluate("allSigned('buyer')", ctx) is False
        assert evaluator.evaluate("partyType('buyer')", ctx) == ""

    def test_role_must_be_string(self):
        """Test a non-string role argument."""
        with pytest.raises(ExpressionEvaluationError, match="party role string"):
            evaluate("partyCount(1)")
