"""
Type definitions for static expression type inference.

Expressions in boolean contexts (required, visible, disabled, include) must
resolve to boolean at runtime; these types describe what the inferrer can
prove about an expression without executing it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class InferredType(str, Enum):
    """Result type of an expression or variable."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"
    COORDINATE = "coordinate"
    MONEY = "money"
    ADDRESS = "address"
    PHONE = "phone"
    DURATION = "duration"
    DATE = "date"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class TypeConfidence(str, Enum):
    """How sure the inferrer is about a type."""

    CERTAIN = "certain"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    """Severity of a validation issue."""

    ERROR = "error"
    WARNING = "warning"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class OperandProblem:
    """An arithmetic operand whose certain type is not a number."""

    operator: str
    operand_type: InferredType
    position: int = 0

    @property
    def message(self) -> str:
        return f"Operator '{self.operator}' requires numbers, but an operand is {self.operand_type}"


@dataclass(frozen=True)
class TypeInferenceResult:
    """
    Result of inferring an expression's type.

    Attributes:
        type: The inferred type.
        confidence: Whether the type is proven.
        reason: Why the type could not be proven, when it could not.
        unresolved: Variable paths missing from the environment, in order.
        operand_problems: Arithmetic operands with a provably non-numeric type.
    """

    type: InferredType
    confidence: TypeConfidence = TypeConfidence.CERTAIN
    reason: Optional[str] = None
    unresolved: Tuple[str, ...] = ()
    operand_problems: Tuple[OperandProblem, ...] = ()

    @property
    def is_certain(self) -> bool:
        return self.confidence == TypeConfidence.CERTAIN

    @classmethod
    def unknown(cls, reason: str) -> "TypeInferenceResult":
        return cls(type=InferredType.UNKNOWN, confidence=TypeConfidence.UNKNOWN, reason=reason)


@dataclass(frozen=True)
class TypeValidationResult:
    """Result of checking that an expression returns an expected type."""

    valid: bool
    severity: Severity = Severity.WARNING
    message: Optional[str] = None
    expected_type: InferredType = InferredType.BOOLEAN
    actual_type: Optional[InferredType] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": self.valid,
            "severity": self.severity.value,
            "message": self.message,
            "expected_type": self.expected_type.value,
            "actual_type": self.actual_type.value if self.actual_type else None,
        }


# Field type tag -> runtime value type
FIELD_TYPE_TO_VALUE_TYPE: Dict[str, InferredType] = {
    # String-valued fields
    "text": InferredType.STRING,
    "email": InferredType.STRING,
    "uuid": InferredType.STRING,
    "uri": InferredType.STRING,
    "enum": InferredType.STRING,
    "time": InferredType.STRING,
    "datetime": InferredType.STRING,
    # Numeric fields
    "number": InferredType.NUMBER,
    "integer": InferredType.NUMBER,
    "percentage": InferredType.NUMBER,
    "rating": InferredType.NUMBER,
    "boolean": InferredType.BOOLEAN,
    # Structured fields with a dedicated type
    "money": InferredType.MONEY,
    "address": InferredType.ADDRESS,
    "phone": InferredType.PHONE,
    "coordinate": InferredType.COORDINATE,
    "duration": InferredType.DURATION,
    "date": InferredType.DATE,
    # Structured fields without one
    "bbox": InferredType.OBJECT,
    "person": InferredType.OBJECT,
    "organization": InferredType.OBJECT,
    "identification": InferredType.OBJECT,
    "fieldset": InferredType.OBJECT,
    "multiselect": InferredType.ARRAY,
}

# Sub-properties reachable as ``<field>.value.<prop>`` on structured fields
STRUCTURED_PROPERTIES: Dict[str, Dict[str, InferredType]] = {
    "money": {"amount": InferredType.NUMBER, "currency": InferredType.STRING},
    "address": {
        "line1": InferredType.STRING,
        "line2": InferredType.STRING,
        "locality": InferredType.STRING,
        "region": InferredType.STRING,
        "postalCode": InferredType.STRING,
        "country": InferredType.STRING,
    },
    "phone": {
        "number": InferredType.STRING,
        "type": InferredType.STRING,
        "extension": InferredType.STRING,
    },
    "coordinate": {"lat": InferredType.NUMBER, "lon": InferredType.NUMBER},
    "bbox": {
        "north": InferredType.NUMBER,
        "south": InferredType.NUMBER,
        "east": InferredType.NUMBER,
        "west": InferredType.NUMBER,
    },
    "duration": {
        "years": InferredType.NUMBER,
        "months": InferredType.NUMBER,
        "weeks": InferredType.NUMBER,
        "days": InferredType.NUMBER,
        "hours": InferredType.NUMBER,
        "minutes": InferredType.NUMBER,
        "seconds": InferredType.NUMBER,
    },
    "person": {
        "fullName": InferredType.STRING,
        "firstName": InferredType.STRING,
        "middleName": InferredType.STRING,
        "lastName": InferredType.STRING,
        "suffix": InferredType.STRING,
        "title": InferredType.STRING,
    },
    "organization": {
        "name": InferredType.STRING,
        "legalName": InferredType.STRING,
        "entityType": InferredType.STRING,
        "domicile": InferredType.STRING,
    },
    "identification": {
        "idType": InferredType.STRING,
        "idNumber": InferredType.STRING,
        "issuingAuthority": InferredType.STRING,
        "issuedDate": InferredType.DATE,
        "expiryDate": InferredType.DATE,
    },
}

# Properties of an attached document, reachable as ``annexes.<id>.<prop>``
ATTACHMENT_PROPERTIES: Dict[str, InferredType] = {
    "name": InferredType.STRING,
    "mimeType": InferredType.STRING,
    "checksum": InferredType.STRING,
}

# Logic keys whose value is a single expression string
SCALAR_LOGIC_TYPES = frozenset({
    "boolean",
    "string",
    "number",
    "integer",
    "percentage",
    "rating",
    "date",
    "time",
    "datetime",
    "duration",
})

# Logic keys whose value is an object of per-property expressions
STRUCTURED_LOGIC_TYPES = frozenset({
    "money",
    "address",
    "phone",
    "coordinate",
    "bbox",
    "person",
    "organization",
    "identification",
})


def get_field_value_type(field_type: str) -> InferredType:
    """Return the runtime value type for a field type tag, or UNKNOWN."""
    return FIELD_TYPE_TO_VALUE_TYPE.get(field_type, InferredType.UNKNOWN)


def get_logic_type(declared_type: str) -> InferredType:
    """Return the inferred type for a logic key's declared type."""
    if declared_type == "string":
        return InferredType.STRING
    return FIELD_TYPE_TO_VALUE_TYPE.get(declared_type, InferredType.UNKNOWN)
