"""
Tests for artifact definition models.
"""

import pytest
from pydantic import ValidationError

from backend.formlogic.models import (
    Bundle,
    Checklist,
    Document,
    FieldDef,
    FieldType,
    Form,
    InlineItem,
    LogicKey,
    PathItem,
    RegistryItem,
    parse_artifact,
)


class TestFieldDef:
    """Tests for FieldDef model."""

    def test_condition_slots(self):
        """Test condition slots accept expressions and constants."""
        field = FieldDef(type="text", visible="fields.age.value > 1", required=True)
        assert field.type == FieldType.TEXT
        assert field.visible == "fields.age.value > 1"
        assert field.required is True
        assert field.disabled is None

    def test_unknown_type(self):
        """Test an unknown field type tag is rejected."""
        with pytest.raises(ValidationError):
            FieldDef(type="hologram")

    def test_fieldset_requires_fields(self):
        """Test a fieldset without nested fields."""
        with pytest.raises(ValidationError) as exc_info:
            FieldDef(type="fieldset")
        assert "nested 'fields'" in str(exc_info.value)

    def test_only_fieldsets_nest(self):
        """Test nested fields on a non-fieldset."""
        with pytest.raises(ValidationError):
            FieldDef(type="text", fields={"x": {"type": "text"}})

    def test_nested_fieldset(self):
        """Test nested fieldsets parse recursively."""
        field = FieldDef(type="fieldset", fields={
            "inner": {"type": "fieldset", "fields": {"leaf": {"type": "number"}}},
        })
        assert field.fields["inner"].fields["leaf"].type == FieldType.NUMBER


class TestLogicKey:
    """Tests for LogicKey model."""

    def test_scalar(self):
        """Test a scalar key with no declared type."""
        key = LogicKey(value="fields.age.value >= 18")
        assert key.is_structured is False
        assert key.expressions() == {None: "fields.age.value >= 18"}

    def test_structured(self):
        """Test a structured key."""
        key = LogicKey(type="money", value={"amount": "1", "currency": "'USD'"})
        assert key.is_structured is True
        assert key.expressions() == {"amount": "1", "currency": "'USD'"}

    def test_structured_value_needs_structured_type(self):
        """Test an object value with a scalar type."""
        with pytest.raises(ValidationError):
            LogicKey(type="number", value={"amount": "1"})

    def test_structured_type_needs_object_value(self):
        """Test a structured type with a single expression."""
        with pytest.raises(ValidationError):
            LogicKey(type="money", value="1")

    def test_shorthand_in_form(self):
        """Test bare strings in a logic section become logic keys."""
        form = Form(logic={"isAdult": "fields.age.value >= 18"})
        assert isinstance(form.logic["isAdult"], LogicKey)
        assert form.logic["isAdult"].value == "fields.age.value >= 18"
        assert form.logic["isAdult"].type is None


class TestForm:
    """Tests for Form model."""

    def test_defaults(self):
        """Test an empty form."""
        form = Form()
        assert form.kind == "form"
        assert form.fields == {}
        assert form.logic == {}

    def test_annexes_and_parties(self):
        """Test annexes and party roles."""
        form = Form(
            annexes={"floorPlan": {"title": "Floor plan", "required": "fields.x.value > 1"}},
            parties={"tenant": {"label": "Tenant", "min": 1, "max": 4}},
        )
        assert form.annexes["floorPlan"].required == "fields.x.value > 1"
        assert form.parties["tenant"].max == 4

    def test_frozen(self):
        """Test models are immutable."""
        form = Form(name="lease")
        with pytest.raises(ValidationError):
            form.name = "other"

    def test_extra_keys_ignored(self):
        """Test unmodelled keys are tolerated."""
        form = Form.model_validate({"kind": "form", "description": "anything"})
        assert form.kind == "form"

    def test_fingerprint_stable(self):
        """Test equal definitions share a fingerprint."""
        data = {"fields": {"age": {"type": "number"}}, "logic": {"a": "fields.age.value > 1"}}
        assert Form.model_validate(data).fingerprint == Form.model_validate(data).fingerprint

    def test_fingerprint_changes(self):
        """Test a changed expression changes the fingerprint."""
        first = Form(logic={"a": "fields.age.value > 1"})
        second = Form(logic={"a": "fields.age.value > 2"})
        assert first.fingerprint != second.fingerprint

    def test_display_name(self):
        """Test display name fallbacks."""
        assert Form(title="Lease", name="lease").display_name == "Lease"
        assert Form(name="lease").display_name == "lease"
        assert Form().display_name == "form"


class TestBundle:
    """Tests for Bundle model."""

    def get_minimal_bundle_data(self):
        return {
            "kind": "bundle",
            "contents": [
                {"type": "inline", "key": "main", "artifact": {"kind": "form"}},
                {"type": "path", "key": "terms", "path": "terms.yaml"},
                {"type": "registry", "key": "addendum", "slug": "acme/addendum", "include": False},
            ],
        }

    def test_content_items(self):
        """Test content items are discriminated by type."""
        bundle = Bundle.model_validate(self.get_minimal_bundle_data())
        assert isinstance(bundle.contents[0], InlineItem)
        assert isinstance(bundle.contents[1], PathItem)
        assert isinstance(bundle.contents[2], RegistryItem)
        assert bundle.contents[2].include is False
        assert isinstance(bundle.contents[0].artifact, Form)

    def test_inline_items(self):
        """Test inline item filtering."""
        bundle = Bundle.model_validate(self.get_minimal_bundle_data())
        assert [item.key for item in bundle.inline_items()] == ["main"]

    def test_duplicate_keys(self):
        """Test content keys must be unique."""
        data = self.get_minimal_bundle_data()
        data["contents"][1]["key"] = "main"
        with pytest.raises(ValidationError) as exc_info:
            Bundle.model_validate(data)
        assert "duplicate content key 'main'" in str(exc_info.value)

    def test_unknown_item_type(self):
        """Test an unknown content item type."""
        data = self.get_minimal_bundle_data()
        data["contents"].append({"type": "url", "key": "x"})
        with pytest.raises(ValidationError):
            Bundle.model_validate(data)


class TestParseArtifact:
    """Tests for parse_artifact."""

    @pytest.mark.parametrize("kind,model", [
        ("form", Form),
        ("document", Document),
        ("bundle", Bundle),
        ("checklist", Checklist),
    ])
    def test_dispatch_by_kind(self, kind, model):
        """Test each kind parses into its model."""
        assert isinstance(parse_artifact({"kind": kind}), model)

    def test_unknown_kind(self):
        """Test an unrecognised kind."""
        with pytest.raises(ValidationError):
            parse_artifact({"kind": "spreadsheet"})

    def test_missing_kind(self):
        """Test a definition without a kind."""
        with pytest.raises(ValidationError):
            parse_artifact({"fields": {}})

    def test_models_pass_through(self):
        """Test already parsed artifacts are returned unchanged."""
        form = Form()
        assert parse_artifact(form) is form
