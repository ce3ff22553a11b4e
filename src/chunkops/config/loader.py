# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/config/loader.py

import logging
import os
from pathlib import Path

import yaml

from .models import ClusterSpec

log = logging.getLogger("chunkops")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> ClusterSpec:
    """
    Load and validate a cluster YAML.

    If CHUNKOPS_OVERRIDES_FILE points at another YAML file, it is deep-merged
    on top before validation (site-specific node lists, images, ...).
    """
    path = Path(path)
    data = _load_yaml(path)

    overrides = os.environ.get("CHUNKOPS_OVERRIDES_FILE")
    if overrides:
        p = Path(overrides)
        if p.is_file():
            log.debug("Merging overrides from %s", p)
            _deep_merge(data, _load_yaml(p))
        else:
            log.warning("CHUNKOPS_OVERRIDES_FILE=%s does not exist, skipping", overrides)

    return ClusterSpec.model_validate(data)
