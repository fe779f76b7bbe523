"""
Pydantic models for artifact definitions.

Artifacts arrive as plain dicts (from YAML or JSON) and are parsed into one
of four variants discriminated by ``kind``: Form, Document, Bundle and
Checklist. Only the parts the logic engine reads are modelled in detail;
everything else is ignored.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from functools import cached_property
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .logic.inferred_types import SCALAR_LOGIC_TYPES, STRUCTURED_LOGIC_TYPES

# A condition slot holds an expression string or a constant boolean
CondExpr = Union[bool, str]


class FieldType(str, Enum):
    """Field type tags."""

    TEXT = "text"
    EMAIL = "email"
    UUID = "uuid"
    URI = "uri"
    ENUM = "enum"
    MULTISELECT = "multiselect"
    TIME = "time"
    DATETIME = "datetime"
    DATE = "date"
    NUMBER = "number"
    INTEGER = "integer"
    PERCENTAGE = "percentage"
    RATING = "rating"
    BOOLEAN = "boolean"
    MONEY = "money"
    ADDRESS = "address"
    PHONE = "phone"
    COORDINATE = "coordinate"
    BBOX = "bbox"
    DURATION = "duration"
    PERSON = "person"
    ORGANIZATION = "organization"
    IDENTIFICATION = "identification"
    FIELDSET = "fieldset"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class FieldDef(_Model):
    """A form field. Fieldsets nest further fields."""

    type: FieldType
    label: Optional[str] = None
    required: Optional[CondExpr] = None
    visible: Optional[CondExpr] = None
    disabled: Optional[CondExpr] = None
    fields: Optional[Dict[str, FieldDef]] = None

    @model_validator(mode="after")
    def check_fieldset(self) -> "FieldDef":
        if self.type == FieldType.FIELDSET and not self.fields:
            raise ValueError("fieldset fields must declare nested 'fields'")
        if self.type != FieldType.FIELDSET and self.fields:
            raise ValueError(f"only fieldset fields may declare nested 'fields' (got type '{self.type.value}')")
        return self


class Annex(_Model):
    """An attachment slot on a form."""

    title: Optional[str] = None
    required: Optional[CondExpr] = None
    visible: Optional[CondExpr] = None


class PartyRole(_Model):
    """A signing party role declared by a form."""

    label: Optional[str] = None
    min: int = 1
    max: Optional[int] = None


class LogicKey(_Model):
    """
    A named, reusable expression.

    ``value`` is a single expression for scalar types, or a mapping of
    property name to expression for structured types (money, address, ...).
    ``type`` may be omitted for scalar keys, in which case it is inferred.
    """

    type: Optional[str] = None
    label: Optional[str] = None
    value: Union[str, Dict[str, str]]

    @model_validator(mode="after")
    def check_shape(self) -> "LogicKey":
        if isinstance(self.value, dict):
            if self.type not in STRUCTURED_LOGIC_TYPES:
                raise ValueError(
                    f"object-valued logic keys need a structured type, got {self.type!r}"
                )
        elif self.type is not None and self.type not in SCALAR_LOGIC_TYPES:
            raise ValueError(f"logic type '{self.type}' needs an object of property expressions")
        return self

    @property
    def is_structured(self) -> bool:
        return isinstance(self.value, dict)

    def expressions(self) -> Dict[Optional[str], str]:
        """Return property -> expression; scalar keys use the ``None`` property."""
        if isinstance(self.value, dict):
            return dict(self.value)
        return {None: self.value}


def _normalize_logic(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    return {k: {"value": v} if isinstance(v, str) else v for k, v in value.items()}


class ArtifactMixin:
    """Behaviour shared by every artifact variant."""

    @cached_property
    def fingerprint(self) -> str:
        """SHA-256 of the canonical model dump. Identifies the definition."""
        payload = self.model_dump_json(exclude_none=True)  # type: ignore[attr-defined]
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @property
    def display_name(self) -> str:
        return getattr(self, "title", None) or getattr(self, "name", None) or self.kind  # type: ignore[attr-defined]


class Form(ArtifactMixin, _Model):
    """A fillable form with fields, annexes, parties and logic keys."""

    kind: Literal["form"] = "form"
    name: Optional[str] = None
    version: Optional[str] = None
    title: Optional[str] = None
    fields: Dict[str, FieldDef] = Field(default_factory=dict)
    annexes: Dict[str, Annex] = Field(default_factory=dict)
    parties: Dict[str, PartyRole] = Field(default_factory=dict)
    logic: Dict[str, LogicKey] = Field(default_factory=dict)

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_logic(cls, value: Any) -> Any:
        return _normalize_logic(value)


class Document(ArtifactMixin, _Model):
    """A static document. Carries no conditional logic."""

    kind: Literal["document"] = "document"
    name: Optional[str] = None
    version: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None


class ChecklistItem(_Model):
    id: str
    title: Optional[str] = None


class Checklist(ArtifactMixin, _Model):
    """A list of items to tick off. Carries no conditional logic."""

    kind: Literal["checklist"] = "checklist"
    name: Optional[str] = None
    version: Optional[str] = None
    title: Optional[str] = None
    items: List[ChecklistItem] = Field(default_factory=list)


class InlineItem(_Model):
    """Bundle content embedded directly in the bundle."""

    type: Literal["inline"] = "inline"
    key: str
    include: Optional[CondExpr] = None
    artifact: Artifact


class PathItem(_Model):
    """Bundle content loaded from a file path."""

    type: Literal["path"] = "path"
    key: str
    include: Optional[CondExpr] = None
    path: str


class RegistryItem(_Model):
    """Bundle content resolved from a registry slug."""

    type: Literal["registry"] = "registry"
    key: str
    include: Optional[CondExpr] = None
    slug: str


ContentItem = Annotated[Union[InlineItem, PathItem, RegistryItem], Field(discriminator="type")]


class Bundle(ArtifactMixin, _Model):
    """A composition of other artifacts with include conditions."""

    kind: Literal["bundle"] = "bundle"
    name: Optional[str] = None
    version: Optional[str] = None
    title: Optional[str] = None
    contents: List[ContentItem] = Field(default_factory=list)
    logic: Dict[str, LogicKey] = Field(default_factory=dict)

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_logic(cls, value: Any) -> Any:
        return _normalize_logic(value)

    @field_validator("contents")
    @classmethod
    def check_unique_keys(cls, contents: List[Any]) -> List[Any]:
        seen = set()
        for item in contents:
            if item.key in seen:
                raise ValueError(f"duplicate content key '{item.key}'")
            seen.add(item.key)
        return contents

    def inline_items(self) -> List[InlineItem]:
        return [item for item in self.contents if isinstance(item, InlineItem)]


Artifact = Annotated[Union[Form, Document, Bundle, Checklist], Field(discriminator="kind")]

InlineItem.model_rebuild()
Bundle.model_rebuild()

_artifact_adapter: TypeAdapter = TypeAdapter(Artifact)


def parse_artifact(data: Any) -> Union[Form, Document, Bundle, Checklist]:
    """
    Parse a definition dict into its artifact model.

    Raises:
        pydantic.ValidationError: If the definition is malformed or its
            ``kind`` is not recognised.
    """
    if isinstance(data, (Form, Document, Bundle, Checklist)):
        return data
    return _artifact_adapter.validate_python(data)
