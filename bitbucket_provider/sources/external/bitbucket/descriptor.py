"""
Declarative endpoint descriptors.

A descriptor fully specifies one logical read: the path template and its
inputs, the optional query filters, the response shape, the attribute schema
the response is projected into and the identity template.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Pattern, Tuple

from bitbucket_provider.exceptions import InputValidationError
from bitbucket_provider.sources.external.bitbucket.schema import Block, LeafKind, ListOf

HOLE = re.compile(r"^\{([a-z_][a-z0-9_]*)(\*?)\}$")
TEMPLATE_FIELD = re.compile(r"\{([a-z_][a-z0-9_.]*)\}")
RESPONSE_PREFIX = "response."


class ResponseShape(str, Enum):
    SINGLE = "single"
    PAGED = "paged"
    RAW = "raw"


@dataclass(frozen=True)
class OneOf:
    values: Tuple[str, ...]

    def __call__(self, name: str, value: Any) -> None:
        if value not in self.values:
            allowed = ", ".join(self.values)
            raise InputValidationError(f"expected {name} to be one of [{allowed}], got {value}")


@dataclass(frozen=True)
class NonEmpty:
    def __call__(self, name: str, value: Any) -> None:
        if isinstance(value, str) and not value.strip():
            raise InputValidationError(f"expected {name} to not be an empty string")


@dataclass(frozen=True)
class Matches:
    pattern: Pattern
    message: str = ""

    def __call__(self, name: str, value: Any) -> None:
        if not self.pattern.fullmatch(str(value)):
            raise InputValidationError(
                self.message or f"invalid value for {name} ({value}), expected to match {self.pattern.pattern}"
            )


def one_of(*values: str) -> OneOf:
    return OneOf(tuple(values))


def non_empty() -> NonEmpty:
    return NonEmpty()


def matches(pattern: str, message: str = "") -> Matches:
    return Matches(re.compile(pattern), message)


@dataclass(frozen=True, kw_only=True)
class InputSpec:
    """An argument of a data source: a path hole or a projection flag."""

    name: str
    kind: LeafKind = LeafKind.STRING
    required: bool = True
    default: Any = None
    validators: Tuple[Any, ...] = ()
    description: str = ""


@dataclass(frozen=True, kw_only=True)
class QuerySpec:
    """An optional filter sent as a query parameter when supplied."""

    name: str
    kind: LeafKind = LeafKind.STRING
    default: Any = None
    validators: Tuple[Any, ...] = ()
    # Query parameter name on the wire, defaults to the input name
    wire_name: Optional[str] = None
    description: str = ""

    @property
    def parameter(self) -> str:
        return self.wire_name or self.name


@dataclass(frozen=True)
class Requires:
    """Inter-field rule: when flag is true, prerequisite must be true as well."""

    flag: str
    prerequisite: str
    message: str = ""

    def check(self, bound: Mapping[str, Any]) -> None:
        if bound.get(self.flag) and not bound.get(self.prerequisite):
            raise InputValidationError(
                self.message or f"{self.flag} cannot be true if {self.prerequisite} is not set to true."
            )


def requires(flag: str, prerequisite: str, message: str = "") -> Requires:
    return Requires(flag, prerequisite, message)


@dataclass(frozen=True)
class ShapeSwitch:
    """Use shape instead of the descriptor's response shape when input equals value."""

    input: str
    value: Any
    shape: ResponseShape


def render_template(template: str, bound: Mapping[str, Any], document: Any = None) -> str:
    """
    Substitute ``{input}`` and ``{response.path}`` fields.

    Booleans render as true/false; missing response fields render empty.
    """
    def substitute(match: "re.Match") -> str:
        key = match.group(1)
        if key.startswith(RESPONSE_PREFIX):
            value = lookup(document, key[len(RESPONSE_PREFIX):])
        else:
            value = bound.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    return TEMPLATE_FIELD.sub(substitute, template)


def lookup(document: Any, path: str) -> Any:
    """Follow a dotted path through nested JSON objects, None when any step is missing."""
    current = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


@dataclass(frozen=True, kw_only=True)
class EndpointDescriptor:
    """
    One logical read against the Bitbucket REST API.

    Args:
        name: Logical data source name, e.g. bitbucket_branch
        path_template: Path segments; "{name}" holes take one encoded segment,
            "{name*}" holes take a slash-separated value encoded piece by piece
        inputs: Path holes and projection flags
        queries: Optional filters, sent in declared order
        response_shape: Single document, paged envelope or raw body
        projection: Attribute schema of the computed surface
        id_rule: Identity template over inputs and {response.path} fields
        collection: Attribute receiving the values of a paged response
        not_found_message: Template of the not_found summary
        parent_mandatory: A paged 404 means the parent is missing and is fatal
        rules: Inter-field input checks
        shape_switch: Input-dependent override of response_shape
        api_root: Absolute root for endpoints served outside the Bitbucket API
        authenticated: Whether the request carries the provider credentials
    """

    name: str
    path_template: Tuple[str, ...]
    inputs: Tuple[InputSpec, ...] = ()
    queries: Tuple[QuerySpec, ...] = ()
    response_shape: ResponseShape = ResponseShape.SINGLE
    projection: Block = field(default_factory=Block)
    id_rule: str = ""
    collection: Optional[str] = None
    not_found_message: Optional[str] = None
    parent_mandatory: bool = False
    rules: Tuple[Requires, ...] = ()
    shape_switch: Optional[ShapeSwitch] = None
    description: str = ""
    api_root: Optional[str] = None
    authenticated: bool = True

    def __post_init__(self) -> None:
        self._check_invariants()

    def _check_invariants(self) -> None:
        if self.api_root is not None and not self.api_root.startswith("https://"):
            raise ValueError(f"{self.name}: api_root must be an absolute https URL")

        inputs = self.input_specs()
        if len(inputs) != len(self.inputs):
            raise ValueError(f"{self.name}: duplicate input names")

        for hole, _ in self.holes():
            spec = inputs.get(hole)
            if spec is None or not spec.required:
                raise ValueError(f"{self.name}: path hole {{{hole}}} must name a required input")

        query_names = [query.name for query in self.queries]
        if len(set(query_names)) != len(query_names):
            raise ValueError(f"{self.name}: duplicate query options")
        overlap = set(query_names) & set(inputs)
        if overlap:
            raise ValueError(f"{self.name}: query options {sorted(overlap)} collide with inputs")
        wire_names = [query.parameter for query in self.queries]
        if len(set(wire_names)) != len(wire_names):
            raise ValueError(f"{self.name}: duplicate query parameter names on the wire")

        computed = set(self.projection.computed_fields())
        collisions = computed & (set(inputs) | set(query_names))
        if collisions:
            raise ValueError(f"{self.name}: computed attributes {sorted(collisions)} collide with inputs")

        if self.response_shape is ResponseShape.PAGED or (
            self.shape_switch is not None and self.shape_switch.shape is ResponseShape.PAGED
        ):
            node = self.projection.fields.get(self.collection or "")
            if not isinstance(node, ListOf):
                raise ValueError(f"{self.name}: paged descriptors need a list collection attribute")

        for rule in self.rules:
            for flag in (rule.flag, rule.prerequisite):
                if flag not in inputs or inputs[flag].kind is not LeafKind.BOOL:
                    raise ValueError(f"{self.name}: rule references unknown boolean input {flag}")

    def input_specs(self) -> Dict[str, InputSpec]:
        return {spec.name: spec for spec in self.inputs}

    def holes(self) -> Tuple[Tuple[str, bool], ...]:
        """(input name, greedy) for every hole of the path template"""
        found = []
        for segment in self.path_template:
            match = HOLE.match(segment)
            if match:
                found.append((match.group(1), bool(match.group(2))))
            elif "{" in segment or "}" in segment:
                raise ValueError(f"{self.name}: malformed path segment {segment}")
        return tuple(found)

    def argument_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.inputs) + tuple(spec.name for spec in self.queries)

    def shape_for(self, bound: Mapping[str, Any]) -> ResponseShape:
        switch = self.shape_switch
        if switch is not None and bound.get(switch.input) == switch.value:
            return switch.shape
        return self.response_shape

    def identity(self, bound: Mapping[str, Any], document: Any = None) -> str:
        return render_template(self.id_rule, bound, document)

    def not_found_summary(self, bound: Mapping[str, Any]) -> Optional[str]:
        if not self.not_found_message:
            return None
        return render_template(self.not_found_message, bound)
