"""
Form logic validation.

Checks every expression in a form definition in two phases:

1. Parse: syntax, unknown variables, unknown functions, argument counts
   and party roles. Expressions that fail here are not type checked, so
   each broken expression is reported once.
2. Type check: logic keys against their declared types, boolean slots
   (required, visible, disabled) through the boolean-context decision
   table, and arithmetic operands.

Logic-key cycles are reported as warnings between the two phases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..logic.dependencies import topological_sort
from ..logic.environment import TypeEnvironment, build_form_type_environment, logic_expression_map
from ..logic.errors import PathSegment
from ..logic.functions import get_function
from ..logic.inferred_types import InferredType, Severity, get_logic_type
from ..logic.inferrer import TypeInferrer
from ..logic.nodes import FunctionCall, Literal, Node, iter_children
from ..logic.parser import ParseResult, parse_expression
from ..models import FieldDef, Form, LogicKey
from .boolean_type import check_boolean_inference
from .result import (
    IssueCategory,
    LogicValidationIssue,
    LogicValidationOptions,
    LogicValidationResult,
    ValidationState,
)

logger = logging.getLogger(__name__)

# Declared logic types whose inferred type must match exactly
_STRICT_LOGIC_TYPES = (InferredType.BOOLEAN, InferredType.NUMBER, InferredType.STRING)


class StopValidation(Exception):
    """Raised internally to stop at the first error."""


@dataclass(frozen=True)
class ExpressionSlot:
    """An expression found in a definition, with where it lives."""

    expression: str
    path: Tuple[PathSegment, ...]
    boolean: bool
    logic_key: Optional[str] = None
    declared_type: Optional[str] = None


class LogicValidatorBase:
    """Shared checks for form and bundle validators."""

    def __init__(self, options: Optional[LogicValidationOptions] = None):
        self.options = options or LogicValidationOptions()
        self.inferrer = TypeInferrer()

    # -- reporting ----------------------------------------------------------

    def _report(self, result: LogicValidationResult, issue: LogicValidationIssue) -> None:
        result.add_issue(issue)
        if issue.is_error and not self.options.collect_all_errors:
            raise StopValidation()

    def _finish(self, result: LogicValidationResult, definition: Any) -> LogicValidationResult:
        if self.options.strict and result.warnings:
            result.valid = False
        result.state = ValidationState.VALID if result.valid else ValidationState.INVALID
        if result.valid:
            result.value = definition
        logger.debug(
            "Validated %s logic: %s (%d errors, %d warnings)",
            getattr(definition, "kind", "definition"),
            result.state.value,
            len(result.errors),
            len(result.warnings),
        )
        return result

    # -- slots --------------------------------------------------------------

    @staticmethod
    def logic_slots(logic: Mapping[str, LogicKey]) -> Iterator[ExpressionSlot]:
        for key, entry in logic.items():
            for prop, expression in entry.expressions().items():
                path: Tuple[PathSegment, ...] = ("logic", key, "value")
                if prop is not None:
                    path += (prop,)
                yield ExpressionSlot(
                    expression=expression,
                    path=path,
                    boolean=False,
                    logic_key=key,
                    declared_type=entry.type if prop is None else None,
                )

    @staticmethod
    def condition_slot(
        value: Union[bool, str, None],
        path: Sequence[PathSegment],
    ) -> Optional[ExpressionSlot]:
        if isinstance(value, str):
            return ExpressionSlot(expression=value, path=tuple(path), boolean=True)
        return None

    # -- phase 1 ------------------------------------------------------------

    def _check_references(
        self,
        result: LogicValidationResult,
        slot: ExpressionSlot,
        env: TypeEnvironment,
    ) -> Optional[ParseResult]:
        """Return the parse result if the expression is fit for type checking."""
        parsed = parse_expression(slot.expression)
        if not parsed.success:
            self._report(result, LogicValidationIssue(
                message=f"Syntax error: {parsed.error}",
                path=list(slot.path),
                category=IssueCategory.SYNTAX_ERROR,
                expression=slot.expression,
                position=parsed.position,
            ))
            return None

        clean = True
        for variable in parsed.variables:
            if variable not in env:
                clean = False
                self._report(result, LogicValidationIssue(
                    message=f'Unknown variable: "{variable}"',
                    path=list(slot.path),
                    category=IssueCategory.UNKNOWN_VARIABLE,
                    expression=slot.expression,
                    variable=variable,
                ))

        for call in _function_calls(parsed.ast):
            if not self._check_call(result, slot, call, env):
                clean = False

        return parsed if clean else None

    def _check_call(
        self,
        result: LogicValidationResult,
        slot: ExpressionSlot,
        call: FunctionCall,
        env: TypeEnvironment,
    ) -> bool:
        signature = get_function(call.name)
        if signature is None:
            self._report(result, LogicValidationIssue(
                message=f'Unknown function: "{call.name}"',
                path=list(slot.path),
                category=IssueCategory.UNKNOWN_FUNCTION,
                expression=slot.expression,
                variable=call.name,
                position=call.position,
            ))
            return False

        if not signature.accepts(len(call.args)):
            self._report(result, LogicValidationIssue(
                message=f"{call.name}() takes {signature.arity_text} argument(s), got {len(call.args)}",
                path=list(slot.path),
                category=IssueCategory.INVALID_ARGUMENTS,
                expression=slot.expression,
                position=call.position,
            ))
            return False

        if signature.party_role_arg and env.party_roles:
            role = call.args[0]
            if isinstance(role, Literal) and isinstance(role.value, str) and role.value not in env.party_roles:
                self._report(result, LogicValidationIssue(
                    message=f'Party role "{role.value}" is not declared in this form',
                    path=list(slot.path),
                    category=IssueCategory.UNKNOWN_PARTY,
                    severity=Severity.WARNING,
                    expression=slot.expression,
                    variable=role.value,
                    position=role.position,
                ))
        return True

    def _check_cycles(self, result: LogicValidationResult, logic: Mapping[str, LogicKey]) -> None:
        if not logic:
            return
        for key in topological_sort(logic_expression_map(logic)).cyclic_keys:
            logger.warning("Logic key %r is involved in a dependency cycle", key)
            entry = logic[key]
            self._report(result, LogicValidationIssue(
                message=f'Circular dependency detected: logic key "{key}" is involved in a dependency cycle',
                path=["logic", key],
                category=IssueCategory.CIRCULAR_DEPENDENCY,
                severity=Severity.WARNING,
                expression=next(iter(entry.expressions().values()), key),
            ))

    # -- phase 2 ------------------------------------------------------------

    def _check_types(
        self,
        result: LogicValidationResult,
        slot: ExpressionSlot,
        ast: Node,
        env: TypeEnvironment,
    ) -> None:
        inference = self.inferrer.infer(ast, env)

        if slot.boolean:
            check = check_boolean_inference(inference)
            if not check.valid:
                error = check.severity == Severity.ERROR
                self._report(result, LogicValidationIssue(
                    message=check.message or "Expression must return a boolean",
                    path=list(slot.path),
                    category=IssueCategory.TYPE_MISMATCH if error else IssueCategory.TYPE_UNKNOWN,
                    severity=check.severity,
                    expression=slot.expression,
                    expected_type=InferredType.BOOLEAN.value,
                    actual_type=check.actual_type.value if check.actual_type else None,
                ))
                return

        elif slot.declared_type is not None and inference.is_certain:
            declared = get_logic_type(slot.declared_type)
            actual = inference.type
            if declared in _STRICT_LOGIC_TYPES and actual not in (declared, InferredType.NULL):
                self._report(result, LogicValidationIssue(
                    message=(
                        f'Logic key "{slot.logic_key}" is declared as {slot.declared_type}, '
                        f"but its expression returns {actual.value}"
                    ),
                    path=list(slot.path),
                    category=IssueCategory.LOGIC_TYPE_MISMATCH,
                    expression=slot.expression,
                    expected_type=declared.value,
                    actual_type=actual.value,
                ))
                return

        for problem in inference.operand_problems:
            self._report(result, LogicValidationIssue(
                message=problem.message,
                path=list(slot.path),
                category=IssueCategory.OPERAND_TYPE_MISMATCH,
                expression=slot.expression,
                expected_type=InferredType.NUMBER.value,
                actual_type=problem.operand_type.value,
                position=problem.position,
            ))

    # -- driver -------------------------------------------------------------

    def _run(
        self,
        result: LogicValidationResult,
        slots: List[ExpressionSlot],
        logic: Mapping[str, LogicKey],
        env: TypeEnvironment,
    ) -> None:
        """Run both phases over ``slots``. May raise StopValidation."""
        checked: List[Tuple[ExpressionSlot, Node]] = []
        for slot in slots:
            parsed = self._check_references(result, slot, env)
            if parsed is not None:
                checked.append((slot, parsed.ast))
        result.state = ValidationState.PARSED

        self._check_cycles(result, logic)

        for slot, ast in checked:
            self._check_types(result, slot, ast, env)
        result.state = ValidationState.TYPE_CHECKED


class FormLogicValidator(LogicValidatorBase):
    """
    Validates the logic of a form.

    Usage:
        validator = FormLogicValidator(LogicValidationOptions(collect_all_errors=False))
        result = validator.validate(form)
        if not result.valid:
            print(result.summary())
    """

    def validate(self, form: Form, env: Optional[TypeEnvironment] = None) -> LogicValidationResult:
        """
        Validate a form's logic.

        Args:
            form: The form definition.
            env: Pre-built type environment, if the caller already has one.

        Returns:
            LogicValidationResult with every issue found.
        """
        result = LogicValidationResult()
        env = env if env is not None else build_form_type_environment(form)
        try:
            self._run(result, list(self.form_slots(form)), form.logic, env)
        except StopValidation:
            pass
        return self._finish(result, form)

    def form_slots(self, form: Form) -> Iterator[ExpressionSlot]:
        """Every expression in the form: logic keys, then fields, then annexes."""
        yield from self.logic_slots(form.logic)
        yield from self._field_slots(form.fields, ("fields",))
        for annex_id, annex in form.annexes.items():
            for name in ("required", "visible"):
                slot = self.condition_slot(getattr(annex, name), ("annexes", annex_id, name))
                if slot is not None:
                    yield slot

    def _field_slots(
        self,
        fields: Optional[Mapping[str, FieldDef]],
        prefix: Tuple[PathSegment, ...],
    ) -> Iterator[ExpressionSlot]:
        if not fields:
            return
        for field_id, field_def in fields.items():
            base = prefix + (field_id,)
            for name in ("required", "visible", "disabled"):
                slot = self.condition_slot(getattr(field_def, name), base + (name,))
                if slot is not None:
                    yield slot
            if field_def.fields:
                yield from self._field_slots(field_def.fields, base + ("fields",))


def _function_calls(node: Node) -> Iterator[FunctionCall]:
    if isinstance(node, FunctionCall):
        yield node
    for child in iter_children(node):
        yield from _function_calls(child)


def validate_form_logic(
    form: Union[Form, Mapping[str, Any]],
    options: Optional[LogicValidationOptions] = None,
) -> LogicValidationResult:
    """
    Convenience function to validate a form's logic.

    Args:
        form: A Form, or a form definition dict.
        options: Validation options.

    Returns:
        LogicValidationResult.
    """
    if not isinstance(form, Form):
        form = Form.model_validate(form)
    return FormLogicValidator(options).validate(form)
