import dataclasses

from bitbucket_provider.sources.external.bitbucket.descriptor import (
    EndpointDescriptor,
    InputSpec,
    ResponseShape,
    one_of,
)
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    ACCOUNT_FIELDS,
    Q,
    REPO_SLUG,
    REPOSITORY_NOT_FOUND,
    SORT,
    WORKSPACE,
    account,
    query,
    repository_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    Block,
    LeafKind,
    block,
    boolean,
    integer,
    items,
    string,
    string_map,
)

PULL_REQUEST_ID = InputSpec(name="pull_request_id", kind=LeafKind.INT, description="Pull request id")
PULL_REQUEST_NOT_FOUND = "unable to locate pull request {pull_request_id} in repository {workspace}/{repo_slug}"
STATES = ("OPEN", "MERGED", "DECLINED", "SUPERSEDED")


def _endpoint(source: str):
    return block(
        {
            "branch": string("branch.name"),
            "commit": string("commit.hash"),
            "repository": string("repository.full_name"),
        },
        source=source,
    )


PULL_REQUEST = EndpointDescriptor(
    name="bitbucket_pull_request",
    description="A pull request",
    path_template=repository_path("pullrequests", "{pull_request_id}"),
    inputs=(WORKSPACE, REPO_SLUG, PULL_REQUEST_ID),
    projection=Block(
        fields={
            "id": integer(),
            "title": string(),
            "description": string(),
            "state": string(),
            "reason": string(),
            "author": account("author"),
            "source": _endpoint("source"),
            "destination": _endpoint("destination"),
            "created_date": string("created_on"),
            "updated_date": string("updated_on"),
            "merge_commit": string("merge_commit.hash"),
            "comment_count": integer(),
            "task_count": integer(),
            "close_source_branch": boolean(),
            "closed_by": account("closed_by"),
            "reviewers": items(dict(ACCOUNT_FIELDS)),
            "participants": items(
                {
                    "role": string(),
                    "approved": boolean(),
                    "state": string(),
                    "display_name": string("user.display_name"),
                    "uuid": string("user.uuid"),
                }
            ),
        }
    ),
    id_rule="{workspace}/{repo_slug}/{pull_request_id}",
    not_found_message=PULL_REQUEST_NOT_FOUND,
)

PULL_REQUESTS = EndpointDescriptor(
    name="bitbucket_pull_requests",
    description="Pull requests of a repository",
    path_template=repository_path("pullrequests"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(
        query("state", "Only pull requests in this state", validators=(one_of(*STATES),)),
        query("source_branch", "Only pull requests from this branch"),
        query("destination_branch", "Only pull requests into this branch"),
        query("author", "Only pull requests opened by this account"),
        query("reviewer", "Only pull requests reviewed by this account"),
        Q,
        SORT,
    ),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "pull_requests": items(
                {
                    "id": integer(),
                    "title": string(),
                    "description": string(),
                    "state": string(),
                    "author": account("author"),
                    "source": string_map(),
                    "destination": string_map(),
                    "merge_commit": string_map(),
                    "created_on": string(),
                    "updated_on": string(),
                    "closed_by": account("closed_by"),
                    "comment_count": integer(),
                    "task_count": integer(),
                }
            )
        }
    ),
    collection="pull_requests",
    id_rule="{workspace}/{repo_slug}/pullrequests",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

PULL_REQUEST_COMMENTS = EndpointDescriptor(
    name="bitbucket_pull_request_comments",
    description="Comments on a pull request",
    path_template=repository_path("pullrequests", "{pull_request_id}", "comments"),
    inputs=(WORKSPACE, REPO_SLUG, PULL_REQUEST_ID),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "comments": items(
                {
                    "id": integer(),
                    "content": string("content.raw"),
                    "user": account("user"),
                    "created_on": string(),
                    "updated_on": string(),
                    "deleted": boolean(),
                    "parent_id": integer("parent.id"),
                    "inline": block({"from": integer(), "to": integer(), "path": string()}, source="inline"),
                }
            )
        }
    ),
    collection="comments",
    id_rule="{workspace}/{repo_slug}/pullrequests/{pull_request_id}/comments",
    not_found_message=PULL_REQUEST_NOT_FOUND,
    parent_mandatory=True,
)

# Name the data source was first published under
PULL_REQUESTS_LEGACY = dataclasses.replace(PULL_REQUESTS, name="bitbucket_pullrequests")

DESCRIPTORS = (PULL_REQUEST, PULL_REQUESTS, PULL_REQUESTS_LEGACY, PULL_REQUEST_COMMENTS)
