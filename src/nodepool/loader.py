"""Desired-state loading with validation.

SECURITY: File size is checked before reading. Input validation is performed
at the boundary; nothing past this module sees unvalidated YAML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as SchemaValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import NodePoolConfig

logger = logging.getLogger(__name__)

NODE_POOL_KIND = "NodePool"


class SpecLoadError(Exception):
    """Raised when a node pool spec cannot be loaded or fails validation."""

    pass


def format_schema_errors(error: SchemaValidationError) -> str:
    """Render pydantic errors as one "  - loc: msg" line each."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"]) or "<root>"
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def parse_node_pool_spec(raw_data: Any, source: str = "<input>") -> NodePoolConfig:
    """Validate an already-parsed document into a NodePoolConfig.

    Accepts either the flat configuration or a Kubernetes-style wrapper
    (apiVersion, kind, metadata, spec).

    Raises:
        SpecLoadError: If the document is not a mapping or fails validation.
    """
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec must be a YAML mapping: {source}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        kind = raw_data.get("kind")
        if kind is not None and kind != NODE_POOL_KIND:
            raise SpecLoadError(f"Expected kind {NODE_POOL_KIND!r}, got {kind!r}: {source}")
        spec_data = raw_data.get("spec")
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")
        # metadata.name stands in for an omitted spec name
        metadata = raw_data.get("metadata")
        if isinstance(metadata, dict) and "name" not in spec_data and metadata.get("name"):
            spec_data = {**spec_data, "name": metadata["name"]}
    else:
        spec_data = raw_data

    try:
        return NodePoolConfig.model_validate(spec_data)
    except SchemaValidationError as e:
        raise SpecLoadError(f"Validation failed for {source}:\n{format_schema_errors(e)}") from e


def load_node_pool_spec(spec_path: Path) -> NodePoolConfig:
    """Load and validate a node pool spec from YAML.

    Raises:
        SpecLoadError: If the file cannot be read, parsed or validated.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    # SECURITY: Check file size before reading
    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    cfg = parse_node_pool_spec(raw_data, source=str(spec_path))
    logger.info("Loaded node pool spec '%s' from %s", cfg.name, spec_path)
    return cfg
