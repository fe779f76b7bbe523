"""
Runtime state builder.

Turns a definition plus one data snapshot into the runtime state a form
renderer needs: for every field its value and visible/required/disabled
flags, for every annex its visible/required flags, and the evaluated logic
values. Definitions with error-severity logic issues are never evaluated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..logic.evaluator import ExpressionEvaluator
from ..logic.values import ABSENT
from ..models import Bundle, FieldDef, Form, InlineItem
from ..validator.result import LogicValidationIssue
from .cache import compile_logic, runtime_cache
from .context import EvaluationContext
from .snapshot import DataSnapshot, thaw, to_snapshot

logger = logging.getLogger(__name__)

# Condition defaults when a slot is not set
VISIBLE_DEFAULT = True
REQUIRED_DEFAULT = False
DISABLED_DEFAULT = False
INCLUDE_DEFAULT = True


def _plain(value: Any) -> Any:
    return None if value is ABSENT else thaw(value)


@dataclass(frozen=True)
class FieldRuntimeState:
    field_id: str
    value: Any
    visible: bool
    required: bool
    disabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": _plain(self.value),
            "visible": self.visible,
            "required": self.required,
            "disabled": self.disabled,
        }


@dataclass(frozen=True)
class AnnexRuntimeState:
    annex_id: str
    visible: bool
    required: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"visible": self.visible, "required": self.required}


@dataclass(frozen=True)
class FormRuntimeState:
    """
    Runtime state of a form for one snapshot.

    Field ids of nested fieldset children are dotted (``address.street``).
    Logic values of keys that could not be evaluated are ``ABSENT``.
    """

    fields: Mapping[str, FieldRuntimeState]
    annexes: Mapping[str, AnnexRuntimeState]
    logic_values: Mapping[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dicts; ABSENT becomes None."""
        return {
            "fields": {k: v.to_dict() for k, v in self.fields.items()},
            "annexes": {k: v.to_dict() for k, v in self.annexes.items()},
            "logic_values": {k: _plain(v) for k, v in self.logic_values.items()},
        }


@dataclass(frozen=True)
class BundleRuntimeState:
    """
    Runtime state of a bundle for one snapshot.

    Attributes:
        contents: Content key -> whether the item is included.
        forms: Runtime states of inline forms, by content key.
        bundles: Runtime states of inline bundles, by content key.
        logic_values: Bundle logic values.
    """

    contents: Mapping[str, bool]
    forms: Mapping[str, FormRuntimeState]
    bundles: Mapping[str, "BundleRuntimeState"]
    logic_values: Mapping[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contents": dict(self.contents),
            "forms": {k: v.to_dict() for k, v in self.forms.items()},
            "bundles": {k: v.to_dict() for k, v in self.bundles.items()},
            "logic_values": {k: _plain(v) for k, v in self.logic_values.items()},
        }


@dataclass(frozen=True)
class FormEvaluationResult:
    """
    Outcome of evaluating a form.

    ``value`` is None when the definition failed validation; ``issues``
    then holds the reasons. Warnings are passed through alongside a value.
    """

    value: Optional[FormRuntimeState] = None
    issues: Tuple[LogicValidationIssue, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class BundleEvaluationResult:
    """Outcome of evaluating a bundle; see FormEvaluationResult."""

    value: Optional[BundleRuntimeState] = None
    issues: Tuple[LogicValidationIssue, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.value is not None


class RuntimeStateBuilder:
    """Builds runtime states from a definition and a payload."""

    def __init__(self, evaluator: Optional[ExpressionEvaluator] = None):
        self.evaluator = evaluator or ExpressionEvaluator()

    def build_form(self, form: Form, data: Mapping[str, Any]) -> FormRuntimeState:
        context = EvaluationContext.for_form(form, data, self.evaluator)
        return self._form_state(form, context)

    def build_bundle(self, bundle: Bundle, data: Mapping[str, Any]) -> BundleRuntimeState:
        context = EvaluationContext.for_bundle(bundle, data, self.evaluator)
        return self._bundle_state(bundle, context)

    def _form_state(self, form: Form, context: EvaluationContext) -> FormRuntimeState:
        logic_values = context.logic_values()

        fields: Dict[str, FieldRuntimeState] = {}
        self._field_states(form.fields, context, fields, "")

        annexes: Dict[str, AnnexRuntimeState] = {}
        for annex_id, annex in form.annexes.items():
            annexes[annex_id] = AnnexRuntimeState(
                annex_id=annex_id,
                visible=self.evaluator.evaluate_condition(annex.visible, context, VISIBLE_DEFAULT),
                required=self.evaluator.evaluate_condition(annex.required, context, REQUIRED_DEFAULT),
            )

        return FormRuntimeState(
            fields=MappingProxyType(fields),
            annexes=MappingProxyType(annexes),
            logic_values=MappingProxyType(logic_values),
        )

    def _field_states(
        self,
        fields: Optional[Mapping[str, FieldDef]],
        context: EvaluationContext,
        out: Dict[str, FieldRuntimeState],
        prefix: str,
    ) -> None:
        if not fields:
            return
        for field_id, field_def in fields.items():
            full_id = f"{prefix}.{field_id}" if prefix else field_id
            value = context.resolve(f"fields.{full_id}.value")
            out[full_id] = FieldRuntimeState(
                field_id=full_id,
                value=value,
                visible=self.evaluator.evaluate_condition(field_def.visible, context, VISIBLE_DEFAULT),
                required=self.evaluator.evaluate_condition(field_def.required, context, REQUIRED_DEFAULT),
                disabled=self.evaluator.evaluate_condition(field_def.disabled, context, DISABLED_DEFAULT),
            )
            if field_def.fields:
                self._field_states(field_def.fields, context, out, full_id)

    def _bundle_state(self, bundle: Bundle, context: EvaluationContext) -> BundleRuntimeState:
        logic_values = context.logic_values()
        contents: Dict[str, bool] = {}
        forms: Dict[str, FormRuntimeState] = {}
        bundles: Dict[str, BundleRuntimeState] = {}

        for item in bundle.contents:
            contents[item.key] = self.evaluator.evaluate_condition(item.include, context, INCLUDE_DEFAULT)
            if not isinstance(item, InlineItem):
                continue
            artifact = item.artifact
            if isinstance(artifact, Form):
                forms[item.key] = self._form_state(artifact, context.child("forms", item.key))
            elif isinstance(artifact, Bundle):
                bundles[item.key] = self._bundle_state(artifact, context.child("bundles", item.key))

        return BundleRuntimeState(
            contents=MappingProxyType(contents),
            forms=MappingProxyType(forms),
            bundles=MappingProxyType(bundles),
            logic_values=MappingProxyType(logic_values),
        )


_builder = RuntimeStateBuilder()


def evaluate_form_logic(
    form: Form,
    data: Union[DataSnapshot, Mapping[str, Any], None] = None,
) -> FormEvaluationResult:
    """
    Evaluate a form's logic against a data snapshot.

    The definition is validated first (once per definition); if it has
    error-severity issues no expression is evaluated and the issues are
    returned instead. Results are cached per (definition, snapshot).

    Args:
        form: The form definition.
        data: A DataSnapshot, or a plain payload to snapshot.

    Returns:
        FormEvaluationResult.

    Raises:
        ExpressionEvaluationError: If an expression fails at runtime.
    """
    compiled = compile_logic(form)
    if compiled.has_errors:
        logger.warning(
            "Refusing to evaluate form '%s': %d logic error(s)",
            form.display_name,
            len(compiled.validation.errors),
        )
        return FormEvaluationResult(issues=tuple(compiled.validation.issues))

    snapshot = to_snapshot(data)
    cache = runtime_cache()
    key = ("form", compiled.fingerprint, snapshot.fingerprint)
    state = cache.get(key)
    if state is None:
        state = _builder.build_form(form, snapshot.data)
        cache.put(key, state)
    return FormEvaluationResult(value=state, issues=tuple(compiled.validation.issues))


def evaluate_bundle_logic(
    bundle: Bundle,
    data: Union[DataSnapshot, Mapping[str, Any], None] = None,
) -> BundleEvaluationResult:
    """
    Evaluate a bundle's include conditions, logic keys and inline forms.

    Fails closed like ``evaluate_form_logic``.
    """
    compiled = compile_logic(bundle)
    if compiled.has_errors:
        logger.warning(
            "Refusing to evaluate bundle '%s': %d logic error(s)",
            bundle.display_name,
            len(compiled.validation.errors),
        )
        return BundleEvaluationResult(issues=tuple(compiled.validation.issues))

    snapshot = to_snapshot(data)
    cache = runtime_cache()
    key = ("bundle", compiled.fingerprint, snapshot.fingerprint)
    state = cache.get(key)
    if state is None:
        state = _builder.build_bundle(bundle, snapshot.data)
        cache.put(key, state)
    return BundleEvaluationResult(value=state, issues=tuple(compiled.validation.issues))
