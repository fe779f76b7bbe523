"""
formlogic: conditional logic for form and bundle definitions.

This package provides a small expression language for field visibility,
required-ness and computed values, with a static type checker that lints
definitions before any data exists and a runtime evaluator that computes
form state from immutable data snapshots.
"""

from .config import FormLogicConfig, get_config, set_config
from .models import (
    Annex,
    Bundle,
    Checklist,
    Document,
    FieldDef,
    FieldType,
    Form,
    InlineItem,
    LogicKey,
    PartyRole,
    PathItem,
    RegistryItem,
    parse_artifact,
)
from .validator import (
    LogicValidationEngine,
    LogicValidationIssue,
    LogicValidationOptions,
    LogicValidationResult,
    validate_boolean_type,
    validate_bundle_logic,
    validate_form_logic,
    validate_logic,
)
from .runtime import DataSnapshot, evaluate_bundle_logic, evaluate_form_logic

__version__ = "1.0.0"
__all__ = [
    # Config
    "FormLogicConfig",
    "get_config",
    "set_config",
    # Models
    "Annex",
    "Bundle",
    "Checklist",
    "Document",
    "FieldDef",
    "FieldType",
    "Form",
    "InlineItem",
    "LogicKey",
    "PartyRole",
    "PathItem",
    "RegistryItem",
    "parse_artifact",
    # Validation
    "LogicValidationEngine",
    "LogicValidationIssue",
    "LogicValidationOptions",
    "LogicValidationResult",
    "validate_boolean_type",
    "validate_bundle_logic",
    "validate_form_logic",
    "validate_logic",
    # Runtime
    "DataSnapshot",
    "evaluate_bundle_logic",
    "evaluate_form_logic",
]
