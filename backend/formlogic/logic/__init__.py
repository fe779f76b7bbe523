"""
Logic engine for formlogic.

Provides expression parsing, static type inference, dependency analysis
and runtime evaluation for conditional logic.
"""

from .errors import (
    CircularDependencyWarning,
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    FormLogicError,
    TypeMismatchError,
    TypeUnknownWarning,
    UnknownFunctionError,
    UnknownVariableError,
)
from .parser import ExpressionParser, ParseResult, collect_variables, parse_expression
from .inferred_types import InferredType, Severity, TypeConfidence, TypeInferenceResult, TypeValidationResult
from .inferrer import TypeInferrer, infer_expression_type
from .environment import TypeEnvironment, build_bundle_type_environment, build_form_type_environment
from .dependencies import DependencyGraph, TopologicalSortResult, topological_sort
from .evaluator import ExpressionEvaluator
from .functions import BUILTIN_FUNCTIONS, FunctionSignature
from .values import ABSENT

__all__ = [
    # Errors
    "FormLogicError",
    "ExpressionSyntaxError",
    "UnknownVariableError",
    "UnknownFunctionError",
    "TypeMismatchError",
    "ExpressionEvaluationError",
    "TypeUnknownWarning",
    "CircularDependencyWarning",
    # Parsing
    "ExpressionParser",
    "ParseResult",
    "parse_expression",
    "collect_variables",
    # Types
    "InferredType",
    "TypeConfidence",
    "Severity",
    "TypeInferenceResult",
    "TypeValidationResult",
    "TypeInferrer",
    "infer_expression_type",
    "TypeEnvironment",
    "build_form_type_environment",
    "build_bundle_type_environment",
    # Dependencies
    "DependencyGraph",
    "TopologicalSortResult",
    "topological_sort",
    # Evaluation
    "ExpressionEvaluator",
    "BUILTIN_FUNCTIONS",
    "FunctionSignature",
    "ABSENT",
]
