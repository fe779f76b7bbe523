"""
Configuration for the formlogic engine.

The ``FormLogicConfig`` dataclass captures the tunables that were previously
scattered as module constants: validation behaviour, parser limits and cache
sizes. A process-wide default is held here and can be replaced with
``set_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


@dataclass
class FormLogicConfig:
    """
    Engine configuration.

    Attributes:
        collect_all_errors: Default for LogicValidationOptions.collect_all_errors.
        strict: Treat warning-severity issues as failures.
        max_expression_length: Longest expression string the parser accepts.
        max_nesting_depth: Deepest parenthesis/operator nesting the parser accepts.
        compiled_cache_size: Number of compiled definitions kept in memory.
        runtime_cache_size: Number of runtime states kept in memory.
    """

    collect_all_errors: bool = True
    strict: bool = False
    max_expression_length: int = 10_000
    max_nesting_depth: int = 64
    compiled_cache_size: int = 256
    runtime_cache_size: int = 1024

    def __post_init__(self):
        """Reject limits that would make the parser or caches unusable."""
        if self.max_expression_length < 1:
            raise ValueError("max_expression_length must be a positive integer")
        if self.max_nesting_depth < 1:
            raise ValueError("max_nesting_depth must be a positive integer")
        if self.compiled_cache_size < 0 or self.runtime_cache_size < 0:
            raise ValueError("cache sizes cannot be negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FormLogicConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: Path) -> "FormLogicConfig":
        """
        Load a config from a YAML file.

        The file may hold the keys at top level or under a ``formlogic`` key.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        if isinstance(data.get("formlogic"), dict):
            data = data["formlogic"]
        return cls.from_mapping(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


_config: Optional[FormLogicConfig] = None


def get_config() -> FormLogicConfig:
    """Return the process-wide config, creating the default on first use."""
    global _config
    if _config is None:
        _config = FormLogicConfig()
    return _config


def set_config(config: Optional[FormLogicConfig]) -> None:
    """Replace the process-wide config. ``None`` restores the defaults."""
    global _config
    _config = config
