from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape, one_of
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    Q,
    REPO_SLUG,
    REPOSITORY_NOT_FOUND,
    SORT,
    WORKSPACE,
    account,
    query,
    required,
    repository_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    SOURCE_RAW_BASE64,
    SOURCE_RAW_TEXT,
    Block,
    LeafKind,
    block,
    boolean,
    integer,
    items,
    string,
    string_map,
)

COMMIT_NOT_FOUND = "unable to locate commit {commit} in repository {workspace}/{repo_slug}"
COMMIT = required("commit", "Commit hash")
COMMIT_SHA = required("commit_sha", "Commit hash")

COMMIT_FIELDS = {
    "hash": string(),
    "message": string(),
    "date": string(),
    "summary": string("summary.raw"),
    "author_raw": string("author.raw"),
    "author": account("author.user"),
    "parents": items({"hash": string(), "type": string()}),
}

COMMIT_DETAIL = EndpointDescriptor(
    name="bitbucket_commit",
    description="A commit of a repository",
    path_template=repository_path("commit", "{commit_sha}"),
    inputs=(WORKSPACE, REPO_SLUG, COMMIT_SHA),
    projection=Block(fields=dict(COMMIT_FIELDS)),
    id_rule="{workspace}/{repo_slug}/{response.hash}",
    not_found_message="unable to locate commit {commit_sha} in repository {workspace}/{repo_slug}",
)

COMMITS = EndpointDescriptor(
    name="bitbucket_commits",
    description="Commits of a repository, newest first",
    path_template=repository_path("commits"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(
        query("include", "Branch or commit whose history is listed"),
        query("exclude", "Branch or commit whose history is left out"),
        query("path", "Only commits touching this path"),
        query("merges", "Whether merge commits are included, excluded or listed alone", validators=(one_of("include", "exclude", "only"),)),
    ),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"commits": items(dict(COMMIT_FIELDS))}),
    collection="commits",
    id_rule="{workspace}/{repo_slug}/commits",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

COMMIT_STATUSES = EndpointDescriptor(
    name="bitbucket_commit_statuses",
    description="Build statuses reported against a commit",
    path_template=repository_path("commits", "{commit}", "statuses"),
    inputs=(WORKSPACE, REPO_SLUG, COMMIT),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "statuses": items(
                {
                    "uuid": string(),
                    "key": string(),
                    "refname": string(),
                    "url": string(),
                    "state": string(),
                    "name": string(),
                    "description": string(),
                    "created_on": string(),
                    "updated_on": string(),
                }
            )
        }
    ),
    collection="statuses",
    id_rule="{workspace}/{repo_slug}/commits/{commit}/statuses",
    not_found_message=COMMIT_NOT_FOUND,
    parent_mandatory=True,
)

COMMIT_COMMENTS = EndpointDescriptor(
    name="bitbucket_commit_comments",
    description="Comments on a commit",
    path_template=repository_path("commit", "{commit_sha}", "comments"),
    inputs=(WORKSPACE, REPO_SLUG, COMMIT_SHA),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "comments": items(
                {
                    "id": integer(),
                    "content": string("content.raw"),
                    "created_on": string(),
                    "updated_on": string(),
                    "type": string(),
                    "deleted": boolean(),
                    "author": account("user"),
                    "inline": block({"from": integer(), "to": integer(), "path": string()}, source="inline"),
                }
            )
        }
    ),
    collection="comments",
    id_rule="{workspace}/{repo_slug}/{commit_sha}/comments",
    not_found_message="unable to locate commit {commit_sha} in repository {workspace}/{repo_slug}",
    parent_mandatory=True,
)

COMMIT_DIFF = EndpointDescriptor(
    name="bitbucket_commit_diff",
    description="Unified diff of a commit against its first parent",
    path_template=repository_path("commits", "{commit}", "diff"),
    inputs=(WORKSPACE, REPO_SLUG, COMMIT),
    queries=(
        query("context", "Lines of context around each change", kind=LeafKind.INT),
        query("path", "Only the diff of this path"),
        query("ignore_whitespace", "Ignore whitespace-only changes", kind=LeafKind.BOOL, default=False),
    ),
    response_shape=ResponseShape.RAW,
    projection=Block(
        fields={
            "content": string(SOURCE_RAW_TEXT, "Diff text, not escaped"),
            "content_b64": string(SOURCE_RAW_BASE64, "Base64 encoded diff"),
        }
    ),
    id_rule="{workspace}/{repo_slug}/commits/{commit}/diff",
    not_found_message=COMMIT_NOT_FOUND,
)

COMMIT_DIFFSTAT = EndpointDescriptor(
    name="bitbucket_commit_diffstat",
    description="Per-file change counts of a commit",
    path_template=repository_path("commits", "{commit}", "diffstat"),
    inputs=(WORKSPACE, REPO_SLUG, COMMIT),
    queries=(query("path", "Only the entry of this path"),),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "diffstat": items(
                {
                    "new_path": string("new.path"),
                    "old_path": string("old.path"),
                    "lines_added": integer(),
                    "lines_removed": integer(),
                    "status": string(),
                    "type": string(),
                }
            )
        }
    ),
    collection="diffstat",
    id_rule="{workspace}/{repo_slug}/commits/{commit}/diffstat",
    not_found_message=COMMIT_NOT_FOUND,
    parent_mandatory=True,
)


def _commit_collection(name, commit, segments, collection, fields, description=""):
    """Paged collection below a commit; a missing commit is fatal."""
    return EndpointDescriptor(
        name=name,
        description=description,
        path_template=repository_path(*segments),
        inputs=(WORKSPACE, REPO_SLUG, commit),
        response_shape=ResponseShape.PAGED,
        projection=Block(fields={collection: items(fields)}),
        collection=collection,
        id_rule="{workspace}/{repo_slug}/" + "/".join(segments),
        not_found_message=f"unable to locate commit {{{commit.name}}} in repository {{workspace}}/{{repo_slug}}",
        parent_mandatory=True,
    )


COMMIT_APPROVALS = _commit_collection(
    "bitbucket_commit_approvals",
    COMMIT,
    ("commits", "{commit}", "approvals"),
    "approvals",
    {
        "uuid": string(),
        "user": string_map(),
        "approved": boolean(),
        "created_on": string(),
        "updated_on": string(),
        "links": string_map(),
    },
    description="Approvals given to a commit",
)

COMMIT_PROPERTIES = _commit_collection(
    "bitbucket_commit_properties",
    COMMIT,
    ("commits", "{commit}", "properties"),
    "properties",
    {"key": string(), "value": string()},
    description="Application properties stored on a commit",
)

COMMIT_PULL_REQUESTS = _commit_collection(
    "bitbucket_commit_pullrequests",
    COMMIT_SHA,
    ("commit", "{commit_sha}", "pullrequests"),
    "pull_requests",
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
        "closed_on": string(),
    },
    description="Pull requests containing a commit",
)

COMMIT_REPORTS = _commit_collection(
    "bitbucket_commit_reports",
    COMMIT_SHA,
    ("commit", "{commit_sha}", "reports"),
    "reports",
    {
        "uuid": string(),
        # Bitbucket calls the reporter-chosen id external_id
        "report_id": string("external_id"),
        "title": string(),
        "details": string(),
        "report_type": string(),
        "reporter": string(),
        "result": string(),
        "link": string(),
        "created_on": string(),
        "updated_on": string(),
    },
    description="Code insight reports attached to a commit",
)

DESCRIPTORS = (
    COMMIT_DETAIL,
    COMMITS,
    COMMIT_STATUSES,
    COMMIT_COMMENTS,
    COMMIT_DIFF,
    COMMIT_DIFFSTAT,
    COMMIT_APPROVALS,
    COMMIT_PROPERTIES,
    COMMIT_PULL_REQUESTS,
    COMMIT_REPORTS,
)

