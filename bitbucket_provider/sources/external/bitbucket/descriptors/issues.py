from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, InputSpec, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    Q,
    REPO_SLUG,
    REPOSITORY_NOT_FOUND,
    SORT,
    WORKSPACE,
    account,
    html_link,
    repository_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    Block,
    LeafKind,
    integer,
    items,
    string,
    string_map,
)

ISSUE_ID = InputSpec(name="issue_id", kind=LeafKind.INT, description="Issue id")
ISSUE_NOT_FOUND = "unable to locate issue {issue_id} in repository {workspace}/{repo_slug}"

ISSUE = EndpointDescriptor(
    name="bitbucket_issue",
    description="An issue of a repository's issue tracker",
    path_template=repository_path("issues", "{issue_id}"),
    inputs=(WORKSPACE, REPO_SLUG, ISSUE_ID),
    projection=Block(
        fields={
            "id": integer(),
            "title": string(),
            "content": string("content.raw"),
            "state": string(),
            "kind": string(),
            "priority": string(),
            "assignee": account("assignee"),
            "reporter": account("reporter"),
            "milestone": string("milestone.name"),
            "component": string("component.name"),
            "version": string("version.name"),
            "created_on": string(),
            "updated_on": string(),
            "votes": integer(),
            "watches": integer(),
            "link": html_link(),
        }
    ),
    id_rule="{workspace}/{repo_slug}/issues/{issue_id}",
    not_found_message=ISSUE_NOT_FOUND,
)

ISSUES = EndpointDescriptor(
    name="bitbucket_issues",
    description="Issues of a repository's issue tracker",
    path_template=repository_path("issues"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "issues": items(
                {
                    "id": integer(),
                    "title": string(),
                    "content": string_map(),
                    "state": string(),
                    "kind": string(),
                    "priority": string(),
                    "assignee": string_map(),
                    "reporter": string_map(),
                    "created_on": string(),
                    "updated_on": string(),
                    "links": string_map(),
                }
            )
        }
    ),
    collection="issues",
    id_rule="{workspace}/{repo_slug}/issues",
    not_found_message=REPOSITORY_NOT_FOUND,
    # 404 when the issue tracker is disabled
    parent_mandatory=False,
)

ISSUE_COMMENTS = EndpointDescriptor(
    name="bitbucket_issue_comments",
    description="Comments on an issue",
    path_template=repository_path("issues", "{issue_id}", "comments"),
    inputs=(WORKSPACE, REPO_SLUG, ISSUE_ID),
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
                }
            )
        }
    ),
    collection="comments",
    id_rule="{workspace}/{repo_slug}/issues/{issue_id}/comments",
    not_found_message=ISSUE_NOT_FOUND,
    parent_mandatory=True,
)

DESCRIPTORS = (ISSUE, ISSUES, ISSUE_COMMENTS)
