"""
Type environments for forms and bundles.

A type environment maps every variable path an expression may reference to
its static type:

    fields.age.value                 -> number      (field)
    fields.rent.value.amount         -> number      (structured sub-property)
    fields.address.street.value      -> string      (field inside a fieldset)
    annexes.floorPlan                -> object      (attached document)
    annexes.floorPlan.mimeType       -> string      (attachment property)
    isAdult                          -> boolean     (logic key)
    forms.main.fields.amount.value   -> number      (inline form in a bundle)
    bundles.sub.someKey              -> ...         (nested bundle logic key)

Undeclared logic-key types are inferred in dependency order, so a key that
references an earlier key picks up that key's type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional

from .dependencies import topological_sort
from .inferred_types import (
    ATTACHMENT_PROPERTIES,
    STRUCTURED_PROPERTIES,
    InferredType,
    get_field_value_type,
    get_logic_type,
)
from .inferrer import infer_expression_type

if TYPE_CHECKING:
    from ..models import Bundle, FieldDef, Form, LogicKey


class TypeEnvironment(Mapping[str, InferredType]):
    """
    Read-only mapping of variable path -> inferred type.

    Also records which bare names are logic keys and which party roles the
    definition declares, so validators can tell them apart from field paths.
    """

    def __init__(
        self,
        types: Optional[Mapping[str, InferredType]] = None,
        logic_keys: Iterable[str] = (),
        party_roles: Iterable[str] = (),
    ):
        self._types: Dict[str, InferredType] = dict(types or {})
        self.logic_keys: FrozenSet[str] = frozenset(logic_keys)
        self.party_roles: FrozenSet[str] = frozenset(party_roles)

    def __getitem__(self, path: str) -> InferredType:
        return self._types[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"TypeEnvironment({len(self._types)} paths, logic_keys={sorted(self.logic_keys)})"

    def prefixed(self, prefix: str) -> Dict[str, InferredType]:
        """Return every entry with ``prefix.`` prepended to its path."""
        return {f"{prefix}.{path}": type_ for path, type_ in self._types.items()}


def collect_field_types(
    fields: Optional[Mapping[str, "FieldDef"]],
    prefix: str = "fields",
) -> Dict[str, InferredType]:
    """
    Map every field value path under ``prefix`` to its type.

    Fieldset children live beside the fieldset's own value path:
    ``fields.address.value`` and ``fields.address.street.value``.
    """
    types: Dict[str, InferredType] = {}
    if not fields:
        return types

    for field_id, field_def in fields.items():
        base = f"{prefix}.{field_id}"
        tag = field_def.type.value
        types[f"{base}.value"] = get_field_value_type(tag)
        for prop, prop_type in STRUCTURED_PROPERTIES.get(tag, {}).items():
            types[f"{base}.value.{prop}"] = prop_type
        if field_def.fields:
            types.update(collect_field_types(field_def.fields, base))
    return types


def collect_annex_types(annexes: Optional[Mapping[str, object]]) -> Dict[str, InferredType]:
    """Map every declared annex and its attachment properties to their types."""
    types: Dict[str, InferredType] = {}
    for annex_id in annexes or ():
        types[f"annexes.{annex_id}"] = InferredType.OBJECT
        for prop, prop_type in ATTACHMENT_PROPERTIES.items():
            types[f"annexes.{annex_id}.{prop}"] = prop_type
    return types


def logic_expression_map(logic: Mapping[str, "LogicKey"]) -> Dict[str, object]:
    """Logic section as key -> expression(s), the shape dependency sorting takes."""
    return {
        key: tuple(entry.value.values()) if isinstance(entry.value, dict) else entry.value
        for key, entry in logic.items()
    }


def _register_logic_types(types: Dict[str, InferredType], logic: Mapping[str, "LogicKey"]) -> None:
    """
    Add logic-key types to ``types`` in place.

    Declared types are registered first. Undeclared keys are then inferred in
    dependency order; keys on a cycle stay unknown.
    """
    if not logic:
        return

    for key, entry in logic.items():
        if entry.type is None:
            continue
        types[key] = get_logic_type(entry.type)
        if isinstance(entry.value, dict):
            known = STRUCTURED_PROPERTIES.get(entry.type, {})
            for prop in entry.value:
                types[f"{key}.{prop}"] = known.get(prop, InferredType.UNKNOWN)

    undeclared = {key for key, entry in logic.items() if entry.type is None}
    if not undeclared:
        return

    sort_result = topological_sort(logic_expression_map(logic))
    for key in sort_result.cyclic_keys:
        if key in undeclared:
            types[key] = InferredType.UNKNOWN
    for key in sort_result.order:
        if key in undeclared:
            types[key] = infer_expression_type(logic[key].value, types).type


def build_form_type_environment(form: "Form") -> TypeEnvironment:
    """
    Build the type environment of a form.

    Example:
        >>> env = build_form_type_environment(Form(fields={"age": {"type": "number"}}))
        >>> env["fields.age.value"]
        <InferredType.NUMBER: 'number'>
    """
    types = collect_field_types(form.fields)
    types.update(collect_annex_types(form.annexes))
    _register_logic_types(types, form.logic)
    return TypeEnvironment(types, logic_keys=form.logic, party_roles=form.parties)


def build_bundle_type_environment(bundle: "Bundle") -> TypeEnvironment:
    """
    Build the type environment of a bundle.

    Inline forms contribute their whole environment under ``forms.<key>.``
    and inline bundles under ``bundles.<key>.``. Path and registry items are
    not available at design time and contribute nothing.
    """
    from ..models import Bundle, Form

    types: Dict[str, InferredType] = {}
    for item in bundle.inline_items():
        artifact = item.artifact
        if isinstance(artifact, Form):
            types.update(build_form_type_environment(artifact).prefixed(f"forms.{item.key}"))
        elif isinstance(artifact, Bundle):
            types.update(build_bundle_type_environment(artifact).prefixed(f"bundles.{item.key}"))

    _register_logic_types(types, bundle.logic)
    return TypeEnvironment(types, logic_keys=bundle.logic)
