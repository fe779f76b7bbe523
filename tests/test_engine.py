"""
Tests for the validation engine and configuration.
"""

import json

import pytest

from backend.formlogic.config import FormLogicConfig, get_config, set_config
from backend.formlogic.logic.parser import parse_expression
from backend.formlogic.models import Checklist, Document
from backend.formlogic.validator.engine import LogicValidationEngine, validate_definition, validate_logic
from backend.formlogic.validator.result import IssueCategory, LogicValidationOptions, ValidationState


LEASE_YAML = """
kind: form
name: lease
fields:
  age:
    type: number
  consent:
    type: boolean
    visible: isAdult
logic:
  isAdult: fields.age.value >= 18
"""


class TestLogicValidationEngine:
    """Tests for LogicValidationEngine."""

    def test_validate_dict(self):
        """Test validating a definition dict."""
        engine = LogicValidationEngine()
        result = engine.validate({"kind": "form", "fields": {"age": {"type": "number"}}})
        assert result.valid is True
        assert result.state == ValidationState.VALID

    def test_schema_error(self):
        """Test malformed definitions produce schema issues."""
        engine = LogicValidationEngine()
        result = engine.validate({"kind": "form", "fields": {"x": {"type": "bogus"}}})
        assert result.valid is False
        assert result.state == ValidationState.INVALID
        assert result.issues[0].category == IssueCategory.SCHEMA_ERROR
        assert result.issues[0].message.startswith("Schema error:")
        assert result.issues[0].path[:2] == ["form", "fields"]

    def test_unknown_kind(self):
        """Test an unrecognised kind is a schema error."""
        result = LogicValidationEngine().validate({"kind": "spreadsheet"})
        assert result.valid is False
        assert result.issues[0].category == IssueCategory.SCHEMA_ERROR

    def test_logic_error_dispatch(self):
        """Test forms are dispatched to the form validator."""
        result = LogicValidationEngine().validate({
            "kind": "form",
            "fields": {"age": {"type": "number", "visible": "fields.age.value + 1"}},
        })
        assert result.errors[0].category == IssueCategory.TYPE_MISMATCH

    def test_options_passed_through(self):
        """Test engine options reach the validator."""
        engine = LogicValidationEngine(LogicValidationOptions(strict=True))
        result = engine.validate({"kind": "form", "logic": {"a": "a or true"}})
        assert result.valid is False

    def test_validate_yaml_file(self, tmp_path):
        """Test validating a YAML file."""
        path = tmp_path / "lease.yaml"
        path.write_text(LEASE_YAML)
        result = LogicValidationEngine().validate_file(path)
        assert result.valid is True

    def test_validate_json_file(self, tmp_path):
        """Test JSON files are read through the YAML loader."""
        path = tmp_path / "doc.json"
        path.write_text(json.dumps({"kind": "document", "content": "Terms"}))
        result = validate_definition(path)
        assert result.valid is True
        assert isinstance(result.value, Document)

    def test_missing_file(self, tmp_path):
        """Test a missing file."""
        result = LogicValidationEngine().validate_file(tmp_path / "missing.yaml")
        assert result.valid is False
        assert result.issues[0].message.startswith("File not found")

    def test_empty_file(self, tmp_path):
        """Test an empty file."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        result = LogicValidationEngine().validate_file(path)
        assert result.issues[0].message == "File is empty"

    def test_invalid_yaml(self, tmp_path):
        """Test a file that is not valid YAML."""
        path = tmp_path / "bad.yaml"
        path.write_text("kind: [form\n")
        result = LogicValidationEngine().validate_file(path)
        assert result.valid is False
        assert result.issues[0].message.startswith("YAML parse error")

    def test_non_mapping(self, tmp_path):
        """Test a top-level list."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        result = LogicValidationEngine().validate_file(path)
        assert "Expected a mapping" in result.issues[0].message


class TestValidateLogic:
    """Tests for validate_logic dispatch."""

    def test_document_and_checklist(self):
        """Test artifacts without logic are always valid."""
        for artifact in (Document(content="x"), Checklist(items=[{"id": "a"}])):
            result = validate_logic(artifact)
            assert result.valid is True
            assert result.value is artifact

    def test_unsupported(self):
        """Test a non-artifact is rejected."""
        with pytest.raises(TypeError):
            validate_logic({"kind": "form"})


class TestFormLogicConfig:
    """Tests for FormLogicConfig."""

    def test_defaults(self):
        """Test default values."""
        config = FormLogicConfig()
        assert config.collect_all_errors is True
        assert config.strict is False
        assert config.to_dict()["max_nesting_depth"] == 64

    def test_invalid_limits(self):
        """Test unusable limits are rejected."""
        with pytest.raises(ValueError):
            FormLogicConfig(max_expression_length=0)
        with pytest.raises(ValueError):
            FormLogicConfig(runtime_cache_size=-1)

    def test_from_mapping_unknown_key(self):
        """Test unknown keys are rejected."""
        with pytest.raises(ValueError, match="Unknown config keys: colour"):
            FormLogicConfig.from_mapping({"colour": "blue"})

    def test_from_yaml(self, tmp_path):
        """Test loading a nested formlogic section."""
        path = tmp_path / "config.yaml"
        path.write_text("formlogic:\n  strict: true\n  max_nesting_depth: 8\n")
        config = FormLogicConfig.from_yaml(path)
        assert config.strict is True
        assert config.max_nesting_depth == 8

    def test_set_config_drives_options(self):
        """Test option defaults come from the process config."""
        set_config(FormLogicConfig(collect_all_errors=False, strict=True))
        options = LogicValidationOptions()
        assert options.collect_all_errors is False
        assert options.strict is True
        assert LogicValidationOptions(strict=False).strict is False

    def test_set_config_none_restores_defaults(self):
        """Test resetting the config."""
        set_config(FormLogicConfig(strict=True))
        set_config(None)
        assert get_config().strict is False

    def test_parser_limits_follow_config(self):
        """Test the expression length limit comes from the config."""
        set_config(FormLogicConfig(max_expression_length=10))
        result = parse_expression("fields.age.value > 1")
        assert result.success is False
        assert "longer than 10" in result.error
