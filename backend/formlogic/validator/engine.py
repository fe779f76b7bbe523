"""
Logic Validation Engine.

Entry point for validating artifact definitions: parses a definition dict
(or a YAML/JSON file) into its artifact model, then dispatches to the form
or bundle validator by artifact type.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..models import Bundle, Checklist, Document, Form, parse_artifact
from .bundle_logic import BundleLogicValidator
from .form_logic import FormLogicValidator
from .result import (
    IssueCategory,
    LogicValidationIssue,
    LogicValidationOptions,
    LogicValidationResult,
    ValidationState,
)

logger = logging.getLogger(__name__)

ArtifactModel = Union[Form, Document, Bundle, Checklist]


def validate_logic(
    artifact: ArtifactModel,
    options: Optional[LogicValidationOptions] = None,
) -> LogicValidationResult:
    """
    Validate the logic of any artifact.

    Forms and bundles are checked in full. Documents and checklists carry
    no conditional logic and are always valid.
    """
    if isinstance(artifact, Form):
        return FormLogicValidator(options).validate(artifact)
    if isinstance(artifact, Bundle):
        return BundleLogicValidator(options).validate(artifact)
    if isinstance(artifact, (Document, Checklist)):
        return LogicValidationResult(valid=True, state=ValidationState.VALID, value=artifact)
    raise TypeError(f"Unsupported artifact type: {type(artifact).__name__}")


class LogicValidationEngine:
    """
    Validates artifact definitions from dicts or files.

    Usage:
        engine = LogicValidationEngine()
        result = engine.validate_file(Path("lease.yaml"))
        print(result.summary())
    """

    def __init__(self, options: Optional[LogicValidationOptions] = None):
        """
        Initialize the engine.

        Args:
            options: Validation options passed to every validator.
        """
        self.options = options or LogicValidationOptions()

    def validate(self, definition: Union[Mapping[str, Any], ArtifactModel]) -> LogicValidationResult:
        """
        Validate a definition.

        Schema problems are reported as ``schema_error`` issues; the logic
        pass only runs on schema-valid definitions.

        Args:
            definition: A definition dict or an already parsed artifact.

        Returns:
            LogicValidationResult.
        """
        try:
            artifact = parse_artifact(definition)
        except ValidationError as e:
            result = LogicValidationResult()
            for error in e.errors():
                result.add_issue(LogicValidationIssue(
                    message=f"Schema error: {error['msg']}",
                    path=list(error.get("loc", ())),
                    category=IssueCategory.SCHEMA_ERROR,
                ))
            result.state = ValidationState.INVALID
            return result

        result = validate_logic(artifact, self.options)
        logger.info(
            "Logic validation of %s '%s': %s",
            artifact.kind,
            artifact.display_name,
            "passed" if result.valid else "failed",
        )
        return result

    def validate_file(self, path: Path) -> LogicValidationResult:
        """
        Validate a YAML or JSON definition file.

        Args:
            path: Path to the definition file.

        Returns:
            LogicValidationResult. Unreadable files produce a single
            ``schema_error`` issue.
        """
        path = Path(path)
        if not path.exists():
            return self._file_error(f"File not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            return self._file_error(f"YAML parse error: {e}")

        if data is None:
            return self._file_error("File is empty")
        if not isinstance(data, dict):
            return self._file_error(f"Expected a mapping at the top level, got {type(data).__name__}")

        return self.validate(data)

    @staticmethod
    def _file_error(message: str) -> LogicValidationResult:
        result = LogicValidationResult(state=ValidationState.INVALID)
        result.add_issue(LogicValidationIssue(message=message, path=[], category=IssueCategory.SCHEMA_ERROR))
        return result


def validate_definition(
    definition: Union[Mapping[str, Any], ArtifactModel, Path],
    options: Optional[LogicValidationOptions] = None,
) -> LogicValidationResult:
    """
    Convenience function to validate a definition dict, artifact or file.
    """
    engine = LogicValidationEngine(options)
    if isinstance(definition, Path):
        return engine.validate_file(definition)
    return engine.validate(definition)

