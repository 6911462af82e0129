"""Validation and file loading for field mappings."""

# Module responsibilities:
# - Reject malformed field placements before any document is generated.
# - Load/dump mapping sets from YAML or JSON files.

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from docmerge.core.errors import InvalidMapping, NotFound

from .schema import FieldMapping, MappingSet


def validate_mapping(mapping: FieldMapping) -> FieldMapping:
    """Check that a mapping can render visible text.

    Raises:
        InvalidMapping: When ``field`` is empty or the box has no area.
    """

    if not mapping.field or not mapping.field.strip():
        raise InvalidMapping("mapping field must not be empty")
    if mapping.size.width <= 0 or mapping.size.height <= 0:
        raise InvalidMapping(
            f"mapping '{mapping.field}' needs a positive box size "
            f"(got {mapping.size.width}x{mapping.size.height})"
        )
    return mapping


def validate_mapping_set(mapping_set: MappingSet) -> MappingSet:
    """Validate every mapping of a set; an empty set is legal."""

    if not mapping_set.name or not mapping_set.name.strip():
        raise InvalidMapping("mapping set name must not be empty")
    for index, mapping in enumerate(mapping_set.mappings, start=1):
        try:
            validate_mapping(mapping)
        except InvalidMapping as exc:
            raise InvalidMapping(f"mapping #{index}: {exc}") from exc
    return mapping_set


def parse_mapping_set(payload: Mapping[str, Any]) -> MappingSet:
    """Build a MappingSet from a decoded payload, converting schema errors."""

    if not isinstance(payload, Mapping):
        raise InvalidMapping("mapping set payload must be a mapping")
    try:
        return MappingSet.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidMapping(f"invalid mapping set: {exc}") from exc


def load_mapping_set(path: Path) -> MappingSet:
    """Load a mapping set from a YAML or JSON file."""

    if not path.exists():
        raise NotFound(f"mapping file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        if path.suffix.lower() == ".json":
            try:
                payload = json.load(fh)
            except json.JSONDecodeError as exc:
                raise InvalidMapping(f"invalid JSON in {path}: {exc}") from exc
        else:
            try:
                payload = yaml.safe_load(fh)
            except yaml.YAMLError as exc:
                raise InvalidMapping(f"invalid YAML in {path}: {exc}") from exc
    if payload is None:
        raise InvalidMapping(f"mapping file is empty: {path}")
    return parse_mapping_set(payload)


def dump_mapping_set(mapping_set: MappingSet, path: Path) -> Path:
    """Write a mapping set as YAML (or JSON when the suffix is .json)."""

    payload = mapping_set.to_payload()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        if path.suffix.lower() == ".json":
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        else:
            yaml.safe_dump(payload, fh, allow_unicode=True, sort_keys=False)
    return path
