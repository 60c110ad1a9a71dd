from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    Q,
    REPO_SLUG,
    REPOSITORY_NOT_FOUND,
    SORT,
    WORKSPACE,
    account,
    required,
    repository_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import Block, items, list_of, string

# Branch and tag attributes are read from the target commit literally
BRANCH_FIELDS = {
    "name": string(),
    "type": string(),
    "target_hash": string("target.hash"),
    "target_date": string("target.date"),
    "target_message": string("target.message"),
}

TAG_FIELDS = {
    "name": string(),
    "message": string(),
    "date": string(),
    "target_hash": string("target.hash"),
    "target_date": string("target.date"),
}

BRANCH = EndpointDescriptor(
    name="bitbucket_branch",
    description="A branch of a repository",
    path_template=repository_path("refs", "branches", "{branch_name}"),
    inputs=(WORKSPACE, REPO_SLUG, required("branch_name", "Branch name, e.g. main or feature/new-feature")),
    projection=Block(
        fields={
            **BRANCH_FIELDS,
            "target_author": account("target.author.user"),
            "default_merge_strategy": string(),
            "merge_strategies": list_of(string()),
        }
    ),
    id_rule="{workspace}/{repo_slug}/{response.name}",
    not_found_message="unable to locate branch {branch_name} in repository {workspace}/{repo_slug}",
)

BRANCHES = EndpointDescriptor(
    name="bitbucket_branches",
    description="Branches of a repository",
    path_template=repository_path("refs", "branches"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"branches": items(dict(BRANCH_FIELDS))}),
    collection="branches",
    id_rule="{workspace}/{repo_slug}/refs/branches",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

TAG = EndpointDescriptor(
    name="bitbucket_tag",
    description="A tag of a repository",
    path_template=repository_path("refs", "tags", "{tag_name}"),
    inputs=(WORKSPACE, REPO_SLUG, required("tag_name", "Tag name")),
    projection=Block(fields={**TAG_FIELDS, "tagger": account("tagger.user")}),
    id_rule="{workspace}/{repo_slug}/{response.name}",
    not_found_message="unable to locate tag {tag_name} in repository {workspace}/{repo_slug}",
)

TAGS = EndpointDescriptor(
    name="bitbucket_tags",
    description="Tags of a repository",
    path_template=repository_path("refs", "tags"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"tags": items(dict(TAG_FIELDS))}),
    collection="tags",
    id_rule="{workspace}/{repo_slug}/refs/tags",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

DESCRIPTORS = (BRANCH, BRANCHES, TAG, TAGS)
