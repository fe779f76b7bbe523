"""
Fill-time evaluation for formlogic.

Builds runtime state (field/annex flags and logic values) from a definition
and an immutable data snapshot, cached per (definition, snapshot).
"""

from .snapshot import DataSnapshot, deep_freeze, to_snapshot
from .context import EvaluationContext, PartyEntry
from .cache import CompiledLogic, LRUCache, clear_caches, compile_logic
from .state import (
    AnnexRuntimeState,
    BundleEvaluationResult,
    BundleRuntimeState,
    FieldRuntimeState,
    FormEvaluationResult,
    FormRuntimeState,
    RuntimeStateBuilder,
    evaluate_bundle_logic,
    evaluate_form_logic,
)

__all__ = [
    # Snapshots
    "DataSnapshot",
    "deep_freeze",
    "to_snapshot",
    # Context
    "EvaluationContext",
    "PartyEntry",
    # Caches
    "CompiledLogic",
    "LRUCache",
    "clear_caches",
    "compile_logic",
    # State
    "AnnexRuntimeState",
    "BundleEvaluationResult",
    "BundleRuntimeState",
    "FieldRuntimeState",
    "FormEvaluationResult",
    "FormRuntimeState",
    "RuntimeStateBuilder",
    "evaluate_bundle_logic",
    "evaluate_form_logic",
]
