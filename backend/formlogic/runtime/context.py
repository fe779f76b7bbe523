"""
Evaluation contexts.

An ``EvaluationContext`` is the read-only view of one data payload that the
expression evaluator resolves variable paths against. Logic keys are
evaluated lazily on first reference and memoized for the lifetime of the
context, which is one evaluation pass over one snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Set, Tuple

from ..logic.dependencies import topological_sort
from ..logic.environment import logic_expression_map
from ..logic.evaluator import ExpressionEvaluator
from ..logic.values import ABSENT
from ..models import Bundle, FieldDef, Form, InlineItem, LogicKey

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class PartyEntry:
    """A party or witness as seen by the party functions."""

    type: str
    data: Mapping[str, Any]
    signed: bool


def _party_entry(party: Any) -> PartyEntry:
    if not isinstance(party, Mapping):
        return PartyEntry(type="", data=_EMPTY, signed=False)
    signed = bool(party.get("signature")) or party.get("signed") is True
    return PartyEntry(type=str(party.get("type", "")), data=party, signed=signed)


def build_parties(parties: Any) -> Mapping[str, Tuple[PartyEntry, ...]]:
    """Normalize ``{role: party | [party, ...]}`` to ``{role: (entry, ...)}``."""
    result: Dict[str, Tuple[PartyEntry, ...]] = {}
    if not isinstance(parties, Mapping):
        return MappingProxyType(result)
    for role, data in parties.items():
        if isinstance(data, (list, tuple)):
            result[role] = tuple(_party_entry(p) for p in data)
        else:
            result[role] = (_party_entry(data),)
    return MappingProxyType(result)


def build_fields(fields: Optional[Mapping[str, FieldDef]], data: Any) -> Mapping[str, Any]:
    """
    Shape field data for path resolution.

    Every declared field becomes ``{"value": ...}``; fieldsets nest their
    children beside their own value. Fieldset data may be a nested mapping
    or flat dotted keys (``{"address.street": ...}``).
    """
    result: Dict[str, Any] = {}
    if not fields:
        return MappingProxyType(result)
    data = data if isinstance(data, Mapping) else _EMPTY

    for field_id, field_def in fields.items():
        if field_id in data:
            value = data[field_id]
        else:
            prefix = f"{field_id}."
            flat = {k[len(prefix):]: v for k, v in data.items() if isinstance(k, str) and k.startswith(prefix)}
            value = MappingProxyType(flat) if flat else ABSENT

        entry: Dict[str, Any] = {"value": value}
        if field_def.fields:
            entry.update(build_fields(field_def.fields, value))
            # The fieldset's own value key wins over a child named "value"
            entry["value"] = value
        result[field_id] = MappingProxyType(entry)
    return MappingProxyType(result)


def build_annexes(annexes: Optional[Mapping[str, Any]], data: Any) -> Mapping[str, Any]:
    """Attachment data of every declared annex; undeclared entries are dropped."""
    data = data if isinstance(data, Mapping) else _EMPTY
    return MappingProxyType({annex_id: data.get(annex_id, ABSENT) for annex_id in annexes or ()})


def walk(value: Any, segments: Sequence[str]) -> Any:
    """Follow path segments through mappings and sequences. Missing -> ABSENT."""
    for segment in segments:
        if isinstance(value, Mapping):
            value = value.get(segment, ABSENT)
        elif isinstance(value, (list, tuple)) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else ABSENT
        else:
            return ABSENT
    return value


class EvaluationContext:
    """
    Runtime view of one payload.

    Resolves:
        fields.<id>[.<child>...].value[.<prop>...]
        annexes.<id>[.<prop>]
        <logicKey>[.<prop>]
        forms.<key>.<path>      (bundles: inline form contexts)
        bundles.<key>.<path>    (bundles: inline bundle contexts)
    """

    def __init__(
        self,
        fields: Mapping[str, Any] = _EMPTY,
        annexes: Mapping[str, Any] = _EMPTY,
        parties: Mapping[str, Tuple[PartyEntry, ...]] = _EMPTY,
        witnesses: Tuple[PartyEntry, ...] = (),
        logic: Optional[Mapping[str, LogicKey]] = None,
        children: Optional[Mapping[Tuple[str, str], "EvaluationContext"]] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
    ):
        self._fields = fields
        self._annexes = annexes
        self._parties = parties
        self._witnesses = witnesses
        self._logic: Mapping[str, LogicKey] = logic or {}
        self._children = dict(children or {})
        self._evaluator = evaluator or ExpressionEvaluator()

        sort_result = topological_sort(logic_expression_map(self._logic)) if self._logic else None
        self._order: Tuple[str, ...] = sort_result.order if sort_result else ()
        self._cyclic: FrozenSet[str] = frozenset(sort_result.cyclic_keys) if sort_result else frozenset()

        self._memo: Dict[str, Any] = {}
        self._in_progress: Set[str] = set()

    @classmethod
    def for_form(
        cls,
        form: Form,
        data: Mapping[str, Any],
        evaluator: Optional[ExpressionEvaluator] = None,
    ) -> "EvaluationContext":
        """Build the context of a form from its payload."""
        witnesses = data.get("witnesses") or ()
        return cls(
            fields=build_fields(form.fields, data.get("fields")),
            annexes=build_annexes(form.annexes, data.get("annexes")),
            parties=build_parties(data.get("parties")),
            witnesses=tuple(_party_entry(w) for w in witnesses),
            logic=form.logic,
            evaluator=evaluator,
        )

    @classmethod
    def for_bundle(
        cls,
        bundle: Bundle,
        data: Mapping[str, Any],
        evaluator: Optional[ExpressionEvaluator] = None,
    ) -> "EvaluationContext":
        """Build the context of a bundle; inline forms and bundles get child contexts."""
        children: Dict[Tuple[str, str], EvaluationContext] = {}
        for item in bundle.contents:
            if not isinstance(item, InlineItem):
                continue
            artifact = item.artifact
            if isinstance(artifact, Form):
                child_data = walk(data, ("forms", item.key))
                children[("forms", item.key)] = cls.for_form(artifact, _mapping(child_data), evaluator)
            elif isinstance(artifact, Bundle):
                child_data = walk(data, ("bundles", item.key))
                children[("bundles", item.key)] = cls.for_bundle(artifact, _mapping(child_data), evaluator)
        return cls(logic=bundle.logic, children=children, evaluator=evaluator)

    # -- party access (used by built-in functions) ------------------------

    def parties_for(self, role: str) -> Tuple[PartyEntry, ...]:
        return self._parties.get(role, ())

    @property
    def witnesses(self) -> Tuple[PartyEntry, ...]:
        return self._witnesses

    # -- resolution -------------------------------------------------------

    @property
    def fields(self) -> Mapping[str, Any]:
        return self._fields

    def child(self, kind: str, key: str) -> Optional["EvaluationContext"]:
        return self._children.get((kind, key))

    def resolve(self, path: str) -> Any:
        """Return the value at a variable path, or ABSENT."""
        head, _, rest = path.partition(".")
        segments = rest.split(".") if rest else []

        if head in self._logic:
            return walk(self.logic_value(head), segments)

        if head == "fields":
            return walk(self._fields, segments)

        if head == "annexes":
            return walk(self._annexes, segments)

        if head in ("forms", "bundles") and len(segments) >= 2:
            child = self._children.get((head, segments[0]))
            if child is not None:
                return child.resolve(".".join(segments[1:]))

        return ABSENT

    def logic_value(self, key: str) -> Any:
        """
        Value of a logic key, evaluated on first use.

        Keys on a dependency cycle are never evaluated and resolve to ABSENT.
        """
        if key in self._memo:
            return self._memo[key]
        if key in self._cyclic or key in self._in_progress:
            return ABSENT

        entry = self._logic[key]
        self._in_progress.add(key)
        try:
            if isinstance(entry.value, dict):
                value: Any = MappingProxyType({
                    prop: self._evaluator.evaluate(expression, self)
                    for prop, expression in entry.value.items()
                })
            else:
                value = self._evaluator.evaluate(entry.value, self)
        finally:
            self._in_progress.discard(key)

        self._memo[key] = value
        return value

    def logic_values(self) -> Dict[str, Any]:
        """All logic values in declaration order, evaluated in dependency order."""
        if self._order:
            logger.debug("Evaluating logic keys in order: %s", ", ".join(self._order))
        for key in self._order:
            self.logic_value(key)
        return {key: self._memo.get(key, ABSENT) for key in self._logic}

    @property
    def evaluation_order(self) -> Tuple[str, ...]:
        return self._order


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else _EMPTY
