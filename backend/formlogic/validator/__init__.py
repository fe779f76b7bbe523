"""
Logic validation for formlogic artifacts.

Design-time checks over a definition, without any data:
- Syntax, unknown variables and unknown functions
- Logic-key dependency cycles
- Boolean-context typing of required/visible/disabled/include slots
- Declared vs inferred logic-key types
"""

from .result import (
    IssueCategory,
    LogicValidationIssue,
    LogicValidationOptions,
    LogicValidationResult,
    ValidationState,
)
from .boolean_type import check_boolean_inference, validate_boolean_type
from .form_logic import FormLogicValidator, validate_form_logic
from .bundle_logic import BundleLogicValidator, validate_bundle_logic
from .engine import LogicValidationEngine, validate_definition, validate_logic

__all__ = [
    # Results
    "IssueCategory",
    "LogicValidationIssue",
    "LogicValidationOptions",
    "LogicValidationResult",
    "ValidationState",
    # Boolean context
    "validate_boolean_type",
    "check_boolean_inference",
    # Validators
    "FormLogicValidator",
    "BundleLogicValidator",
    "validate_form_logic",
    "validate_bundle_logic",
    # Engine
    "LogicValidationEngine",
    "validate_definition",
    "validate_logic",
]
