"""
Caches for compiled definitions and runtime states.

Both caches are bounded LRUs keyed by explicit fingerprints, never by
object identity: compiled logic by definition fingerprint, runtime states
by (definition fingerprint, snapshot fingerprint). Sizes come from the
process config when a cache is first used.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Generic, Hashable, Optional, TypeVar, Union

from ..config import get_config
from ..logic.environment import (
    TypeEnvironment,
    build_bundle_type_environment,
    build_form_type_environment,
)
from ..models import Bundle, Form
from ..validator.bundle_logic import BundleLogicValidator
from ..validator.form_logic import FormLogicValidator
from ..validator.result import LogicValidationOptions, LogicValidationResult

logger = logging.getLogger(__name__)

V = TypeVar("V")

_MISSING = object()


class LRUCache(Generic[V]):
    """Thread-safe least-recently-used cache."""

    def __init__(self, maxsize: int, name: str = "cache"):
        self.maxsize = maxsize
        self.name = name
        self.hits = 0
        self.misses = 0
        self._data: "OrderedDict[Hashable, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self.misses += 1
                logger.debug("%s miss: %s", self.name, key)
                return None
            self._data.move_to_end(key)
            self.hits += 1
            logger.debug("%s hit: %s", self.name, key)
            return value  # type: ignore[return-value]

    def put(self, key: Hashable, value: V) -> None:
        if self.maxsize <= 0:
            return
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data


@dataclass(frozen=True)
class CompiledLogic:
    """
    Everything derived from a definition alone, shared read-only.

    Attributes:
        fingerprint: Definition fingerprint.
        env: Type environment.
        validation: Logic validation result (all issues collected).
    """

    fingerprint: str
    env: TypeEnvironment
    validation: LogicValidationResult

    @property
    def has_errors(self) -> bool:
        return bool(self.validation.errors)


_lock = threading.Lock()
_compiled_cache: Optional[LRUCache[CompiledLogic]] = None
_runtime_cache: Optional[LRUCache[Any]] = None


def compiled_cache() -> LRUCache[CompiledLogic]:
    global _compiled_cache
    with _lock:
        if _compiled_cache is None:
            _compiled_cache = LRUCache(get_config().compiled_cache_size, name="compiled logic cache")
        return _compiled_cache


def runtime_cache() -> LRUCache[Any]:
    global _runtime_cache
    with _lock:
        if _runtime_cache is None:
            _runtime_cache = LRUCache(get_config().runtime_cache_size, name="runtime state cache")
        return _runtime_cache


def clear_caches() -> None:
    """Drop both caches; they are recreated with current config sizes on next use."""
    global _compiled_cache, _runtime_cache
    with _lock:
        _compiled_cache = None
        _runtime_cache = None


def compile_logic(definition: Union[Form, Bundle]) -> CompiledLogic:
    """
    Validate and analyse a form or bundle, once per definition fingerprint.
    """
    cache = compiled_cache()
    key = (definition.kind, definition.fingerprint)
    compiled = cache.get(key)
    if compiled is not None:
        return compiled

    options = LogicValidationOptions(collect_all_errors=True, strict=False)
    if isinstance(definition, Form):
        env = build_form_type_environment(definition)
        validation = FormLogicValidator(options).validate(definition, env)
    else:
        env = build_bundle_type_environment(definition)
        validation = BundleLogicValidator(options).validate(definition, env)

    compiled = CompiledLogic(
        fingerprint=definition.fingerprint,
        env=env,
        validation=validation,
    )
    cache.put(key, compiled)
    return compiled
