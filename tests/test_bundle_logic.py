"""
Tests for bundle logic validation.
"""

from backend.formlogic.logic.inferred_types import Severity
from backend.formlogic.validator.bundle_logic import validate_bundle_logic
from backend.formlogic.validator.result import IssueCategory, LogicValidationOptions


def get_minimal_bundle(include=None, **overrides):
    """Return a bundle with an inline form and a registry addendum."""
    addendum = {"type": "registry", "key": "addendum", "slug": "acme/addendum"}
    if include is not None:
        addendum["include"] = include
    data = {
        "kind": "bundle",
        "contents": [
            {
                "type": "inline",
                "key": "main",
                "artifact": {"kind": "form", "fields": {"amount": {"type": "number"}}},
            },
            addendum,
        ],
    }
    data.update(overrides)
    return data


class TestIncludeConditions:
    """Tests for content include conditions."""

    def test_valid_include(self):
        """Test an include condition reading an inline form field."""
        result = validate_bundle_logic(get_minimal_bundle("forms.main.fields.amount.value > 1000"))
        assert result.valid is True
        assert result.issues == []

    def test_number_include_is_error(self):
        """Test a number-valued include condition."""
        result = validate_bundle_logic(get_minimal_bundle("forms.main.fields.amount.value + 100"))
        assert result.valid is False
        assert len(result.issues) == 1
        issue = result.issues[0]
        assert issue.severity == Severity.ERROR
        assert issue.actual_type == "number"
        assert issue.path == ["contents", 1, "include"]

    def test_unknown_inline_key(self):
        """Test a reference to a content key that is not an inline form."""
        result = validate_bundle_logic(get_minimal_bundle("forms.addendum.fields.x.value > 1"))
        assert result.issues[0].category == IssueCategory.UNKNOWN_VARIABLE

    def test_constant_include(self):
        """Test constant include values."""
        assert validate_bundle_logic(get_minimal_bundle(False)).issues == []

    def test_include_on_inline_item(self):
        """Test include conditions on inline items are checked too."""
        data = get_minimal_bundle()
        data["contents"][0]["include"] = "forms.main.fields.amount.value"
        result = validate_bundle_logic(data)
        assert result.issues[0].path == ["contents", 0, "include"]
        assert result.issues[0].actual_type == "number"


class TestBundleLogicKeys:
    """Tests for bundle-level logic keys."""

    def test_logic_key_in_include(self):
        """Test an include condition referencing a bundle logic key."""
        data = get_minimal_bundle("big", logic={"big": "forms.main.fields.amount.value > 1000"})
        result = validate_bundle_logic(data)
        assert result.valid is True
        assert result.issues == []

    def test_number_logic_key_in_include(self):
        """Test a number-valued logic key in an include condition."""
        data = get_minimal_bundle("doubled", logic={"doubled": "forms.main.fields.amount.value * 2"})
        result = validate_bundle_logic(data)
        assert [i.path for i in result.errors] == [["contents", 1, "include"]]

    def test_cycle_warning(self):
        """Test bundle logic cycles are warnings."""
        data = get_minimal_bundle(logic={"a": "b", "b": "a"})
        result = validate_bundle_logic(data)
        assert result.valid is True
        assert [i.category for i in result.warnings] == [IssueCategory.CIRCULAR_DEPENDENCY] * 2


class TestNestedArtifacts:
    """Tests for issues inside inline artifacts."""

    def test_inline_form_issue_path(self):
        """Test inline form issues are prefixed with their content position."""
        data = get_minimal_bundle()
        data["contents"][0]["artifact"]["fields"]["note"] = {
            "type": "text",
            "visible": "fields.amount.value + 1",
        }
        result = validate_bundle_logic(data)
        assert len(result.errors) == 1
        assert result.errors[0].path == ["contents", 0, "artifact", "fields", "note", "visible"]

    def test_nested_bundle(self):
        """Test include conditions reading through a nested bundle."""
        data = {
            "kind": "bundle",
            "contents": [
                {
                    "type": "inline",
                    "key": "sub",
                    "artifact": {
                        "kind": "bundle",
                        "contents": [{
                            "type": "inline",
                            "key": "f",
                            "artifact": {"kind": "form", "fields": {"x": {"type": "number"}}},
                            "include": "forms.f.fields.x.value + 1",
                        }],
                    },
                },
                {
                    "type": "path",
                    "key": "terms",
                    "path": "terms.yaml",
                    "include": "bundles.sub.forms.f.fields.x.value > 0",
                },
            ],
        }
        result = validate_bundle_logic(data)
        assert [i.path for i in result.errors] == [["contents", 0, "artifact", "contents", 0, "include"]]

    def test_inline_document_has_no_logic(self):
        """Test inline documents are skipped."""
        data = get_minimal_bundle()
        data["contents"].append({"type": "inline", "key": "doc", "artifact": {"kind": "document"}})
        assert validate_bundle_logic(data).issues == []

    def test_stop_at_first_error(self):
        """Test collect_all_errors=False across bundle and inline form."""
        data = get_minimal_bundle("forms.main.fields.amount.value + 1")
        data["contents"][0]["artifact"]["fields"]["note"] = {
            "type": "text",
            "visible": "fields.amount.value + 1",
        }
        assert len(validate_bundle_logic(data).errors) == 2
        result = validate_bundle_logic(data, LogicValidationOptions(collect_all_errors=False))
        assert len(result.errors) == 1
        assert result.errors[0].path == ["contents", 1, "include"]
