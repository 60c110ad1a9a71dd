"""
Request assembly from a descriptor and a host input map.

Inputs are checked and defaulted first; the path template is then expanded
with every hole percent-encoded as a path segment, and the supplied query
options are appended in the descriptor's declared order.
"""

import math
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from bitbucket_provider.exceptions import InputValidationError
from bitbucket_provider.sources.client.http.http_request import HTTPRequest
from bitbucket_provider.sources.external.bitbucket.descriptor import (
    HOLE,
    EndpointDescriptor,
    InputSpec,
    QuerySpec,
)
from bitbucket_provider.sources.external.bitbucket.schema import LeafKind

_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


def coerce_input(name: str, kind: LeafKind, value: Any) -> Any:
    """Check a host value against its declared kind, accepting the string forms a CLI supplies."""
    if kind is LeafKind.STRING:
        if isinstance(value, str):
            return value
    elif kind is LeafKind.BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in _TRUE | _FALSE:
            return value.lower() in _TRUE
    elif kind is LeafKind.INT:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return int(value, 10)
            except ValueError:
                pass
    elif kind is LeafKind.FLOAT:
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            return float(value)
        if isinstance(value, str):
            try:
                parsed = float(value)
            except ValueError:
                parsed = math.nan
            if math.isfinite(parsed):
                return parsed
    raise InputValidationError(f"expected {name} to be of type {kind.value}, got {value!r}")


def _check(spec: Any, value: Any) -> Any:
    value = coerce_input(spec.name, spec.kind, value)
    for validator in spec.validators:
        validator(spec.name, value)
    return value


def _bind_input(spec: InputSpec, supplied: Mapping[str, Any], path_inputs: set) -> Any:
    value = supplied.get(spec.name)
    if value is None:
        if spec.required:
            raise InputValidationError(f"missing required argument {spec.name}")
        return spec.default
    value = _check(spec, value)
    if spec.name in path_inputs and isinstance(value, str) and not value:
        raise InputValidationError(f"expected {spec.name} to not be an empty string")
    return value


def _bind_query(spec: QuerySpec, supplied: Mapping[str, Any]) -> Any:
    value = supplied.get(spec.name)
    if value is None:
        return spec.default
    return _check(spec, value)


def bind_inputs(descriptor: EndpointDescriptor, inputs: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Validate host inputs and apply defaults.

    Returns:
        Every declared input and query option, in declaration order

    Raises:
        InputValidationError: unknown or computed argument, missing required
            input, wrong kind, failed validator or failed inter-field rule
    """
    supplied = dict(inputs or {})
    known = set(descriptor.argument_names())
    computed = set(descriptor.projection.computed_fields())
    for name in supplied:
        if name in known:
            continue
        if name in computed:
            raise InputValidationError(f"{name} is a computed attribute and cannot be set")
        raise InputValidationError(f"unsupported argument {name}")

    path_inputs = {name for name, _ in descriptor.holes()}
    bound: Dict[str, Any] = {}
    for spec in descriptor.inputs:
        bound[spec.name] = _bind_input(spec, supplied, path_inputs)
    for query in descriptor.queries:
        bound[query.name] = _bind_query(query, supplied)

    for rule in descriptor.rules:
        rule.check(bound)
    return bound


def encode_segment(value: Any) -> str:
    """Percent-encode a value as exactly one path segment ("/" becomes %2F)."""
    return quote(render_value(value), safe="")


def encode_greedy(value: Any) -> str:
    """Percent-encode every slash-separated piece of a nested path on its own."""
    pieces = render_value(value).strip("/").split("/")
    return "/".join(quote(piece, safe="") for piece in pieces)


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_path(descriptor: EndpointDescriptor, bound: Mapping[str, Any]) -> str:
    segments = []
    for segment in descriptor.path_template:
        match = HOLE.match(segment)
        if not match:
            segments.append(segment)
            continue
        value = bound[match.group(1)]
        segments.append(encode_greedy(value) if match.group(2) else encode_segment(value))
    return "/".join(segments)


def build_query(descriptor: EndpointDescriptor, bound: Mapping[str, Any]) -> Dict[str, str]:
    """Supplied query options, in declared order; values equal to their default are not sent."""
    query: Dict[str, str] = {}
    for spec in descriptor.queries:
        value = bound.get(spec.name)
        if value is None or value == spec.default:
            continue
        if spec.parameter in query:
            raise InputValidationError(f"duplicate query parameter {spec.parameter}")
        query[spec.parameter] = render_value(value)
    return query


def build_request(descriptor: EndpointDescriptor, bound: Mapping[str, Any]) -> HTTPRequest:
    url = build_path(descriptor, bound)
    if descriptor.api_root:
        url = "/".join(part for part in (descriptor.api_root.rstrip("/"), url) if part)
    return HTTPRequest(
        url=url,
        query_params=build_query(descriptor, bound),
        authenticated=descriptor.authenticated,
    )


def build_url(descriptor: EndpointDescriptor, inputs: Mapping[str, Any], base_url: str) -> str:
    """Absolute URL a read with these inputs would fetch first."""
    return build_request(descriptor, bind_inputs(descriptor, inputs)).resolve(base_url)
