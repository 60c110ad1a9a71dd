"""Inputs, filters and schema fragments shared by the Bitbucket data sources."""

from typing import Any, Optional, Tuple

from bitbucket_provider.sources.external.bitbucket.descriptor import (
    InputSpec,
    QuerySpec,
    non_empty,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    LeafKind,
    block,
    href,
    string,
)

API_VERSION = "2.0"

WORKSPACE = InputSpec(name="workspace", validators=(non_empty(),), description="Workspace slug or UUID")
REPO_SLUG = InputSpec(name="repo_slug", validators=(non_empty(),), description="Repository slug or UUID")

Q = QuerySpec(name="q", description="Bitbucket query language filter")
SORT = QuerySpec(name="sort", description="Field to sort by, prefixed with - for descending order")

REPOSITORY_NOT_FOUND = "unable to locate repository {workspace}/{repo_slug}"
WORKSPACE_NOT_FOUND = "unable to locate workspace {workspace}"


def required(name: str, description: str = "", *validators: Any) -> InputSpec:
    return InputSpec(name=name, validators=(non_empty(),) + validators, description=description)


def flag(name: str, description: str = "") -> InputSpec:
    return InputSpec(name=name, kind=LeafKind.BOOL, required=False, default=False, description=description)


def query(
    name: str,
    description: str = "",
    kind: LeafKind = LeafKind.STRING,
    default: Any = None,
    validators: Tuple[Any, ...] = (),
    wire_name: Optional[str] = None,
) -> QuerySpec:
    return QuerySpec(
        name=name,
        kind=kind,
        default=default,
        validators=validators,
        wire_name=wire_name,
        description=description,
    )


def workspace_path(*segments: str) -> Tuple[str, ...]:
    return (API_VERSION, "workspaces", "{workspace}") + segments


def repository_path(*segments: str) -> Tuple[str, ...]:
    return (API_VERSION, "repositories", "{workspace}", "{repo_slug}") + segments


ACCOUNT_FIELDS = {
    "username": string(description="Username (deprecated by Bitbucket, usually empty)"),
    "display_name": string(description="Display name"),
    "uuid": string(description="Account UUID"),
    "account_id": string(description="Atlassian account id"),
    "nickname": string(description="Nickname"),
}


def account(source: Optional[str] = None, description: str = "") -> Any:
    """A user or team object flattened to its identifying fields."""
    return block(dict(ACCOUNT_FIELDS), source=source, description=description)


def html_link(source: str = "links.html") -> Any:
    return href(source)

