"""
JSON translation file parser and serializer.

Supports the two layouts used by i18next, vue-i18n and friends:

- flat: ``{"user.name": "Name", "Are you sure?": "..."}``. Keys are literal
  strings and may contain dots or whole sentences.
- nested: ``{"user": {"name": "Name"}}``. Nesting encodes the key path.

The layout of every parsed file is remembered in a ``StructureRegistry`` so
the file is written back with the layout it was read with.
"""
import json
import logging
import os
from collections import Counter
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from translator_sync.errors import MalformedInputError

logger = logging.getLogger(__name__)


class JsonStructure(str, Enum):
    FLAT = "flat"
    NESTED = "nested"


class StructureRegistry:
    """Remembers the structure of every JSON file parsed during a sync run."""

    def __init__(self):
        self._structures: Dict[str, JsonStructure] = {}

    @staticmethod
    def _normalize(file_path: str) -> str:
        return os.path.normpath(file_path)

    def remember(self, file_path: str, structure: JsonStructure) -> None:
        self._structures[self._normalize(file_path)] = structure

    def get(self, file_path: str) -> Optional[JsonStructure]:
        return self._structures.get(self._normalize(file_path))

    def clear(self) -> None:
        self._structures.clear()

    def __len__(self) -> int:
        return len(self._structures)


# Used when callers do not thread their own registry through.
STRUCTURE_REGISTRY = StructureRegistry()


def detect_structure(obj: Dict[str, Any]) -> JsonStructure:
    """
    Decide whether a parsed JSON object is flat or nested.

    Only value shapes count: the object is nested iff at least one top-level
    value is itself an object. Dots inside keys are never taken as a hint.
    """
    for value in obj.values():
        if isinstance(value, dict):
            return JsonStructure.NESTED
    return JsonStructure.FLAT


def flatten_json(obj: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested JSON to dot notation keys.

    Example: ``{"user": {"name": "Name"}}`` -> ``{"user.name": "Name"}``.
    Lists, primitives and empty objects are leaves and are never descended into.
    """
    result: Dict[str, Any] = {}
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value:
            result.update(flatten_json(value, full_key))
        else:
            result[full_key] = value
    return result


def unflatten_json(translations: Dict[str, Any], file_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Unflatten dot notation keys back to nested JSON.

    Example: ``{"user.name": "Name"}`` -> ``{"user": {"name": "Name"}}``.

    Raises:
        MalformedInputError: If a key is used both as a leaf and as a path prefix.
    """
    result: Dict[str, Any] = {}
    for key, value in translations.items():
        parts = key.split('.')
        current = result
        for part in parts[:-1]:
            node = current.setdefault(part, {})
            if not isinstance(node, dict):
                raise MalformedInputError(
                    f"Cannot nest key '{key}' in {file_path or 'JSON output'}: "
                    f"'{part}' already holds a value.",
                    file_path,
                )
            current = node
        if isinstance(current.get(parts[-1]), dict):
            raise MalformedInputError(
                f"Cannot nest key '{key}' in {file_path or 'JSON output'}: it is also a path prefix.",
                file_path,
            )
        current[parts[-1]] = value
    return result


def _keys_look_nested(keys: Iterable[str]) -> bool:
    """
    Heuristic used only when the structure of a file is unknown.

    Keys are treated as paths only if some key contains a dot, every dotted key
    splits into clean non-empty segments, its first segment is shared with at
    least one other key, and no key is both a leaf and a prefix of another key.
    """
    keys = list(keys)
    dotted = [key for key in keys if '.' in key]
    if not dotted:
        return False

    prefix_counts: Counter = Counter()
    for key in keys:
        segments = key.split('.')
        for i in range(1, len(segments)):
            prefix_counts['.'.join(segments[:i])] += 1

    for key in dotted:
        segments = key.split('.')
        if any(not segment or segment != segment.strip() for segment in segments):
            return False
        if prefix_counts[segments[0]] < 2:
            return False

    return not any(key in prefix_counts for key in keys)


def resolve_structure(
        translations: Dict[str, Any],
        file_path: Optional[str] = None,
        forced_structure: Optional[JsonStructure] = None,
        registry: Optional[StructureRegistry] = None
) -> JsonStructure:
    """Pick the output structure: forced, then remembered for the path, then heuristic."""
    if forced_structure is not None:
        return JsonStructure(forced_structure)
    registry = registry if registry is not None else STRUCTURE_REGISTRY
    if file_path:
        remembered = registry.get(file_path)
        if remembered is not None:
            return remembered
    if _keys_look_nested(translations.keys()):
        return JsonStructure.NESTED
    return JsonStructure.FLAT


def parse_json_content(
        content: str,
        file_path: Optional[str] = None,
        registry: Optional[StructureRegistry] = None
) -> Dict[str, Any]:
    """
    Parse JSON translation file content into a key -> text mapping.

    Args:
        content: Raw JSON text.
        file_path: When given, the detected structure is remembered for this path.
        registry: Structure registry to use; defaults to the module registry.

    Returns:
        Dict[str, Any]: Flattened keys for nested files, literal keys for flat files.

    Raises:
        MalformedInputError: On JSON syntax errors or a non-object top level.
    """
    name = file_path or "<json content>"
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse JSON content of %s: %s", name, exc)
        raise MalformedInputError(
            f"Invalid JSON translation file {name}: {exc.msg} at line {exc.lineno}", file_path
        ) from exc

    if not isinstance(parsed, dict):
        raise MalformedInputError(
            f"Invalid JSON translation file {name}: root element must be an object", file_path
        )

    structure = detect_structure(parsed)
    if file_path:
        registry = registry if registry is not None else STRUCTURE_REGISTRY
        registry.remember(file_path, structure)
    logger.debug("Detected %s JSON structure for %s", structure.value, name)

    if structure is JsonStructure.NESTED:
        return flatten_json(parsed)
    return dict(parsed)


def serialize_json_content(
        translations: Dict[str, Any],
        file_path: Optional[str] = None,
        forced_structure: Optional[JsonStructure] = None,
        registry: Optional[StructureRegistry] = None
) -> str:
    """
    Serialize a key -> text mapping to JSON text.

    The output is indented with two spaces, keeps non-ASCII characters and ends
    with a newline.
    """
    structure = resolve_structure(translations, file_path, forced_structure, registry)
    if structure is JsonStructure.NESTED:
        data = unflatten_json(translations, file_path)
    else:
        data = dict(translations)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
