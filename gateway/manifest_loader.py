"""Manifest loader — parse and validate gateway.yaml."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from contracts.manifest import Manifest

MANIFEST_ENV = "GATEWAY_MANIFEST"
DEFAULT_MANIFEST_PATH = "./gateway.yaml"


def load_manifest(path: str) -> Manifest:
    """Load a gateway.yaml file and return a validated Manifest."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    raw = p.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        return Manifest()
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a YAML mapping, got {type(data).__name__}")

    return Manifest(**data)


def resolve_manifest(path: str | None = None) -> Manifest:
    """Load the manifest named by *path* or ``GATEWAY_MANIFEST``.

    An explicitly named manifest must exist.  When nothing is named and the
    default ``./gateway.yaml`` is absent, built-in defaults apply.
    """
    explicit = path or os.environ.get(MANIFEST_ENV)
    if explicit:
        return load_manifest(explicit)
    if Path(DEFAULT_MANIFEST_PATH).exists():
        return load_manifest(DEFAULT_MANIFEST_PATH)
    return Manifest()
