"""
Bundle logic validation.

Checks a bundle's own logic keys and content include conditions against
the bundle type environment, then validates inline forms and bundles
recursively. Issues from nested artifacts are reported with their paths
prefixed by ``contents, <i>, artifact``.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Optional, Union

from ..logic.environment import TypeEnvironment, build_bundle_type_environment
from ..models import Bundle, Form, InlineItem
from .form_logic import ExpressionSlot, FormLogicValidator, LogicValidatorBase, StopValidation
from .result import LogicValidationOptions, LogicValidationResult


class BundleLogicValidator(LogicValidatorBase):
    """Validates the logic of a bundle and its inline artifacts."""

    def validate(self, bundle: Bundle, env: Optional[TypeEnvironment] = None) -> LogicValidationResult:
        """
        Validate a bundle's logic.

        Args:
            bundle: The bundle definition.
            env: Pre-built type environment, if the caller already has one.

        Returns:
            LogicValidationResult covering the bundle and every inline artifact.
        """
        result = LogicValidationResult()
        env = env if env is not None else build_bundle_type_environment(bundle)
        try:
            self._run(result, list(self.bundle_slots(bundle)), bundle.logic, env)
            self._validate_inline(result, bundle)
        except StopValidation:
            pass
        return self._finish(result, bundle)

    def bundle_slots(self, bundle: Bundle) -> Iterator[ExpressionSlot]:
        """Bundle logic keys, then include conditions in content order."""
        yield from self.logic_slots(bundle.logic)
        for i, item in enumerate(bundle.contents):
            slot = self.condition_slot(item.include, ("contents", i, "include"))
            if slot is not None:
                yield slot

    def _validate_inline(self, result: LogicValidationResult, bundle: Bundle) -> None:
        for i, item in enumerate(bundle.contents):
            if not isinstance(item, InlineItem):
                continue
            artifact = item.artifact
            if isinstance(artifact, Form):
                nested = FormLogicValidator(self.options).validate(artifact)
            elif isinstance(artifact, Bundle):
                nested = BundleLogicValidator(self.options).validate(artifact)
            else:
                continue
            for issue in nested.issues:
                self._report(result, issue.with_prefix(("contents", i, "artifact")))


def validate_bundle_logic(
    bundle: Union[Bundle, Mapping[str, Any]],
    options: Optional[LogicValidationOptions] = None,
) -> LogicValidationResult:
    """
    Convenience function to validate a bundle's logic.

    Args:
        bundle: A Bundle, or a bundle definition dict.
        options: Validation options.

    Returns:
        LogicValidationResult.
    """
    if not isinstance(bundle, Bundle):
        bundle = Bundle.model_validate(bundle)
    return BundleLogicValidator(options).validate(bundle)
