"""
Immutable data snapshots.

A snapshot is a deep-frozen copy of the data a form or bundle is filled
with. Form payloads look like::

    {
        "fields": {"age": 25, "address": {"street": "1 Main St"}},
        "parties": {"buyer": {"type": "person", "signature": {...}}},
        "witnesses": [{"type": "person"}],
        "annexes": {"floorPlan": {...}},
    }

Bundle payloads nest form and bundle payloads under ``forms.<key>`` and
``bundles.<key>``. Edits never touch a snapshot; they return a new one with
a higher version and a new fingerprint.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

_versions = itertools.count(1)
_versions_lock = threading.Lock()


def _next_version() -> int:
    with _versions_lock:
        return next(_versions)


def deep_freeze(value: Any) -> Any:
    """Recursively convert dicts to read-only mappings and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(deep_freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of ``deep_freeze``: plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    if isinstance(value, frozenset):
        return sorted((thaw(v) for v in value), key=repr)
    return value


def _canonical_key(key: Any) -> str:
    if isinstance(key, str):
        return f"s:{key}"
    if key is None or isinstance(key, (bool, int, float)):
        return f"{type(key).__name__}:{json.dumps(key)}"
    raise TypeError(f"Unsupported mapping key in snapshot data: {key!r}")


def _canonical(value: Any) -> Any:
    """Type-tagged, JSON-encodable form of ``value``."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {_canonical_key(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {"$set": sorted(_encode(_canonical(v)) for v in value)}
    # datetime before date: a datetime is a date
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, time):
        return {"$time": value.isoformat()}
    if isinstance(value, timedelta):
        return {"$timedelta": value.total_seconds()}
    if isinstance(value, Decimal):
        return {"$decimal": str(value)}
    raise TypeError(f"Unsupported value in snapshot data: {type(value).__name__}")


def _encode(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), allow_nan=True)


def content_fingerprint(data: Any) -> str:
    """
    SHA-256 of the canonical encoding of ``data``.

    Values keep their type in the encoding, so a date and its ISO string,
    or the key ``1`` and the key ``"1"``, never share a fingerprint.

    Raises:
        TypeError: If ``data`` holds a value with no canonical encoding.
    """
    return hashlib.sha256(_encode(_canonical(data)).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DataSnapshot:
    """
    Deep-frozen data for one fill pass.

    Attributes:
        data: The frozen payload.
        version: Monotonic counter; later snapshots have higher versions.
        fingerprint: Content hash; equal payloads share a fingerprint.
    """

    data: Mapping[str, Any]
    version: int = field(compare=False)
    fingerprint: str

    def __hash__(self) -> int:
        return hash(self.fingerprint)

    @classmethod
    def create(cls, data: Optional[Mapping[str, Any]] = None) -> "DataSnapshot":
        """Freeze ``data`` into a new snapshot."""
        frozen = deep_freeze(dict(data or {}))
        return cls(data=frozen, version=_next_version(), fingerprint=content_fingerprint(frozen))

    def section(self, name: str) -> Any:
        """Top-level section such as ``fields`` or ``parties``; empty mapping if missing."""
        return self.data.get(name, MappingProxyType({}))

    @property
    def fields(self) -> Mapping[str, Any]:
        return self.section("fields")

    def replace(self, **sections: Any) -> "DataSnapshot":
        """Return a new snapshot with top-level sections replaced."""
        data = thaw(self.data)
        data.update(sections)
        return DataSnapshot.create(data)

    def with_field_value(self, field_id: str, value: Any) -> "DataSnapshot":
        """
        Return a new snapshot with one field value set.

        Dotted ids (``address.street``) write into nested fieldset data.
        """
        data = thaw(self.data)
        target = data.setdefault("fields", {})
        *parents, leaf = field_id.split(".")
        for part in parents:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[leaf] = value
        return DataSnapshot.create(data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain, mutable copy of the payload."""
        return thaw(self.data)


def to_snapshot(data: Union[DataSnapshot, Mapping[str, Any], None]) -> DataSnapshot:
    """Accept a snapshot or a plain payload."""
    if isinstance(data, DataSnapshot):
        return data
    return DataSnapshot.create(data)
