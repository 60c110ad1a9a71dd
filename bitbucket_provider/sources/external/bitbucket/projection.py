"""
Projection of decoded JSON documents into attribute trees.

Rules:
- Leaves coerce strictly: strings from JSON strings, ints from JSON numbers
  (truncated), floats from JSON numbers, bools from JSON booleans; null gives
  the zero value and every other mismatch is a decode error.
- Scalar maps keep leaf members and re-encode nested members as compact JSON.
- Lists map element-wise; null and [] both give [].
- Blocks become a singleton list of mappings; absent or null gives [].
- Predicated attributes take their zero value unless every driving flag is true.
- Raw bodies project to their UTF-8 text and their standard Base64 encoding.
"""

import base64
import json
import math
from typing import Any, Dict, Mapping, Optional

from bitbucket_provider.exceptions import DecodeError
from bitbucket_provider.sources.external.bitbucket.descriptor import lookup
from bitbucket_provider.sources.external.bitbucket.schema import (
    SOURCE_RAW_BASE64,
    SOURCE_RAW_TEXT,
    SOURCE_SELF,
    Block,
    Leaf,
    LeafKind,
    ListOf,
    ScalarMap,
    SchemaNode,
)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _mismatch(path: str, expected: str, value: Any) -> DecodeError:
    return DecodeError(f"cannot project {path}: expected {expected}, got {_type_name(value)}")


def coerce_leaf(kind: LeafKind, value: Any, path: str) -> Any:
    if value is None:
        return Leaf(kind=kind).zero()
    if kind is LeafKind.STRING:
        if isinstance(value, str):
            return value
    elif kind is LeafKind.BOOL:
        if isinstance(value, bool):
            return value
    elif isinstance(value, bool):
        # JSON booleans are not numbers
        raise _mismatch(path, kind.value, value)
    elif kind is LeafKind.INT:
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise DecodeError(f"cannot project {path}: non-finite number {value}")
            return int(value)
    elif kind is LeafKind.FLOAT:
        if isinstance(value, (int, float)):
            return float(value)
    raise _mismatch(path, kind.value, value)


def stringify(value: Any) -> str:
    """Compact JSON text of a value."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _map_member(kind: LeafKind, value: Any, path: str) -> Any:
    if isinstance(value, (dict, list)):
        return stringify(value)
    if kind is LeafKind.STRING and isinstance(value, (bool, int, float)):
        return stringify(value)
    return coerce_leaf(kind, value, path)


def _enabled(node: SchemaNode, flags: Mapping[str, Any]) -> bool:
    return all(bool(flags.get(flag)) for flag in node.when)


def project_fields(block: Block, document: Any, flags: Mapping[str, Any], path: str = "") -> Dict[str, Any]:
    """Project a JSON object into a plain mapping of the block's fields."""
    if document is not None and not isinstance(document, dict):
        raise _mismatch(path or "document", "object", document)
    result: Dict[str, Any] = {}
    for name, node in block.fields.items():
        field_path = f"{path}.{name}" if path else name
        if not _enabled(node, flags):
            result[name] = node.zero()
            continue
        source = node.source or name
        if source == SOURCE_SELF:
            value = document
        elif document is None:
            value = None
        else:
            value = lookup(document, source)
        result[name] = project_node(node, value, flags, field_path)
    return result


def project_node(node: SchemaNode, value: Any, flags: Mapping[str, Any], path: str) -> Any:
    if isinstance(node, Leaf):
        return coerce_leaf(node.kind, value, path)

    if isinstance(node, ScalarMap):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise _mismatch(path, "object", value)
        return {str(key): _map_member(node.value_kind, member, f"{path}.{key}") for key, member in value.items()}

    if isinstance(node, ListOf):
        if value is None:
            return []
        if not isinstance(value, list):
            raise _mismatch(path, "array", value)
        return [_project_element(node.element, element, flags, f"{path}[{index}]") for index, element in enumerate(value)]

    if isinstance(node, Block):
        if value is None:
            return []
        if isinstance(value, dict):
            return [project_fields(node, value, flags, path)]
        if isinstance(value, list) and (node.max_items is None or len(value) <= node.max_items):
            return [project_fields(node, element, flags, f"{path}[{index}]") for index, element in enumerate(value)]
        raise _mismatch(path, "object", value)

    raise TypeError(f"unknown schema node {type(node).__name__} at {path}")


def _project_element(node: SchemaNode, value: Any, flags: Mapping[str, Any], path: str) -> Any:
    # Blocks inside lists are plain mappings, not singleton lists
    if isinstance(node, Block):
        if value is None:
            return project_fields(node, {}, flags, path)
        return project_fields(node, value, flags, path)
    return project_node(node, value, flags, path)


def project_raw(block: Block, body: bytes) -> Dict[str, Any]:
    """Project a raw body; raw-sourced leaves are filled, everything else takes zero values."""
    result: Dict[str, Any] = {}
    for name, node in block.fields.items():
        if node.source == SOURCE_RAW_TEXT:
            result[name] = body.decode("utf-8", errors="replace")
        elif node.source == SOURCE_RAW_BASE64:
            result[name] = base64.b64encode(body).decode("ascii")
        else:
            result[name] = node.zero()
    return result


def project_document(
    block: Block,
    document: Any,
    flags: Mapping[str, Any],
    raw: Optional[bytes] = None,
) -> Dict[str, Any]:
    """
    Project a response into the computed attributes of a data source.

    Args:
        block: Attribute schema of the data source
        document: Decoded JSON document (ignored when raw is given)
        flags: Bound inputs, consulted by predicated attributes
        raw: Raw body for raw-shaped responses

    Returns:
        Attribute name to projected value, for every field of the schema

    Raises:
        DecodeError: when a value cannot be coerced to its declared kind
    """
    if raw is not None:
        return project_raw(block, raw)

    raw_fields = {
        name for name, node in block.fields.items() if node.source in (SOURCE_RAW_TEXT, SOURCE_RAW_BASE64)
    }
    structured = Block(fields={name: node for name, node in block.fields.items() if name not in raw_fields})
    result = project_fields(structured, document, flags)
    for name in raw_fields:
        result[name] = block.fields[name].zero()
    return {name: result[name] for name in block.fields}
