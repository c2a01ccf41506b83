"""
Utilities for loading chart field alias/default configuration.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_PATH = Path(__file__).resolve().parent / "field_mappings.yaml"


@lru_cache()
def load_mapping_config() -> Dict[str, Any]:
    if not CONFIG_PATH.exists():
        return {}
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def get_field_alias(field: str, source: str) -> Optional[str]:
    """Canonical path for an alias, or None when the alias is unknown."""
    aliases = load_mapping_config().get("aliases", {})
    target = aliases.get(field.lower())
    if isinstance(target, dict):
        return target.get(source)
    return target


def get_source_default(kind: str, source: str) -> Optional[str]:
    defaults = load_mapping_config().get("defaults", {})
    return (defaults.get(kind) or {}).get(source)


def get_treemap_defaults() -> Dict[str, str]:
    defaults = load_mapping_config().get("defaults", {})
    return dict(defaults.get("treemap") or {})
