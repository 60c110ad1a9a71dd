"""
Attribute schema tree.

Every data source declares the attributes it exposes as a tree of nodes:
Leaf (string, int, float, bool), ScalarMap, ListOf and Block. Each node has a
mode (required, optional or computed) and may name the JSON path it is read
from when that differs from the attribute name.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

# Special sources resolved against the response rather than a JSON path
SOURCE_SELF = "."
SOURCE_RAW_TEXT = "@raw"
SOURCE_RAW_BASE64 = "@raw_b64"


class Mode(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    COMPUTED = "computed"


class LeafKind(str, Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"


ZERO_VALUES = {
    LeafKind.STRING: "",
    LeafKind.INT: 0,
    LeafKind.FLOAT: 0.0,
    LeafKind.BOOL: False,
}


@dataclass(frozen=True, kw_only=True)
class Node:
    mode: Mode = Mode.COMPUTED
    description: str = ""
    # Dotted JSON path, relative to the enclosing object; None means the attribute name
    source: Optional[str] = None
    # Boolean inputs that must all be true for the attribute to be populated
    when: Tuple[str, ...] = ()

    @property
    def computed(self) -> bool:
        return self.mode is Mode.COMPUTED


@dataclass(frozen=True, kw_only=True)
class Leaf(Node):
    kind: LeafKind

    def zero(self):
        return ZERO_VALUES[self.kind]


@dataclass(frozen=True, kw_only=True)
class ScalarMap(Node):
    value_kind: LeafKind = LeafKind.STRING

    def zero(self) -> dict:
        return {}


@dataclass(frozen=True, kw_only=True)
class ListOf(Node):
    element: "SchemaNode"

    def zero(self) -> list:
        return []


@dataclass(frozen=True, kw_only=True)
class Block(Node):
    fields: Dict[str, "SchemaNode"] = field(default_factory=dict)
    max_items: Optional[int] = None

    def zero(self) -> list:
        return []

    def computed_fields(self) -> Dict[str, "SchemaNode"]:
        return {name: node for name, node in self.fields.items() if node.computed}


SchemaNode = Union[Leaf, ScalarMap, ListOf, Block]


def string(source: Optional[str] = None, description: str = "", when: Tuple[str, ...] = ()) -> Leaf:
    return Leaf(kind=LeafKind.STRING, source=source, description=description, when=when)


def integer(source: Optional[str] = None, description: str = "", when: Tuple[str, ...] = ()) -> Leaf:
    return Leaf(kind=LeafKind.INT, source=source, description=description, when=when)


def number(source: Optional[str] = None, description: str = "", when: Tuple[str, ...] = ()) -> Leaf:
    return Leaf(kind=LeafKind.FLOAT, source=source, description=description, when=when)


def boolean(source: Optional[str] = None, description: str = "", when: Tuple[str, ...] = ()) -> Leaf:
    return Leaf(kind=LeafKind.BOOL, source=source, description=description, when=when)


def string_map(source: Optional[str] = None, description: str = "") -> ScalarMap:
    return ScalarMap(value_kind=LeafKind.STRING, source=source, description=description)


def list_of(element: SchemaNode, source: Optional[str] = None, description: str = "") -> ListOf:
    return ListOf(element=element, source=source, description=description)


def block(
    fields: Dict[str, SchemaNode],
    source: Optional[str] = None,
    max_items: Optional[int] = 1,
    description: str = "",
    when: Tuple[str, ...] = (),
) -> Block:
    """Nested object attribute, projected as a list of at most max_items mappings."""
    return Block(fields=fields, source=source, max_items=max_items, description=description, when=when)


def items(fields: Dict[str, SchemaNode], source: Optional[str] = None, description: str = "") -> ListOf:
    """List of nested objects (a paged collection or a JSON array of objects)."""
    return ListOf(element=Block(fields=fields), source=source, description=description)


def href(source: str) -> Block:
    """A Bitbucket link object: {"href": ...}."""
    return block({"href": string()}, source=source)
