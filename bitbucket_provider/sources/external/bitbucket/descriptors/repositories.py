from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
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
    block,
    boolean,
    href,
    integer,
    items,
    list_of,
    string,
    string_map,
)

REPOSITORY = EndpointDescriptor(
    name="bitbucket_repository",
    description="A repository",
    path_template=repository_path(),
    inputs=(WORKSPACE, REPO_SLUG),
    projection=Block(
        fields={
            "name": string(),
            "full_name": string(),
            "uuid": string(),
            "scm": string(),
            "description": string(),
            "language": string(),
            "fork_policy": string(),
            "is_private": boolean(),
            "has_wiki": boolean(),
            "has_issues": boolean(),
            "size": integer(),
            "created_on": string(),
            "updated_on": string(),
            "main_branch": string("mainbranch.name"),
            "owner": account("owner"),
            "project": block({"key": string(), "name": string(), "uuid": string()}, source="project"),
            "link": block({"avatar": href("avatar"), "html": href("html")}, source="links"),
        }
    ),
    id_rule="{response.uuid}",
    not_found_message="unable to locate repository with slug/UUID {repo_slug} in workspace {workspace}",
)


def _repository_collection(name, segments, collection, fields, queries=(), description=""):
    """Paged collection below a repository; a missing repository is fatal."""
    return EndpointDescriptor(
        name=name,
        description=description,
        path_template=repository_path(*segments),
        inputs=(WORKSPACE, REPO_SLUG),
        queries=queries,
        response_shape=ResponseShape.PAGED,
        projection=Block(fields={collection: items(fields)}),
        collection=collection,
        id_rule="{workspace}/{repo_slug}/" + "/".join(segments),
        not_found_message=REPOSITORY_NOT_FOUND,
        parent_mandatory=True,
    )


VARIABLE_FIELDS = {
    "uuid": string(),
    "key": string(),
    "value": string(),
    "secured": boolean(),
}

HOOK_FIELDS = {
    "uuid": string(),
    "url": string(),
    "description": string(),
    "subject_type": string(),
    "active": boolean(),
    "created_at": string(),
    "events": list_of(string()),
}

REPOSITORY_PERMISSIONS = _repository_collection(
    "bitbucket_repository_permissions",
    ("permissions",),
    "permissions",
    {
        "permission": string(),
        "user": account("user"),
        "repository": string("repository.full_name"),
    },
    queries=(Q, SORT),
    description="Explicit user permissions of a repository",
)

REPOSITORY_VARIABLES = _repository_collection(
    "bitbucket_repository_variables",
    ("pipelines_config", "variables"),
    "variables",
    dict(VARIABLE_FIELDS),
    description="Pipelines variables defined on a repository",
)

REPOSITORY_DEPLOY_KEYS = _repository_collection(
    "bitbucket_repository_deploy_keys",
    ("deploy-keys",),
    "deploy_keys",
    {
        "id": integer(),
        "key": string(),
        "label": string(),
        "comment": string(),
        "created_on": string(),
        "last_used": string(),
    },
    description="Access keys with read access to a repository",
)

REPOSITORY_HOOKS = _repository_collection(
    "bitbucket_repository_hooks",
    ("hooks",),
    "hooks",
    dict(HOOK_FIELDS),
    description="Webhooks installed on a repository",
)

REPOSITORY_FORKS = _repository_collection(
    "bitbucket_repository_forks",
    ("forks",),
    "forks",
    {
        "name": string(),
        "full_name": string(),
        "uuid": string(),
        "is_private": boolean(),
        "created_on": string(),
        "owner": account("owner"),
    },
    queries=(Q, SORT),
    description="Forks of a repository",
)

REPOSITORY_WATCHERS = _repository_collection(
    "bitbucket_repository_watchers",
    ("watchers",),
    "watchers",
    dict(ACCOUNT_FIELDS),
    description="Accounts watching a repository",
)

REPOSITORY_DEFAULT_REVIEWERS = _repository_collection(
    "bitbucket_repository_default_reviewers",
    ("default-reviewers",),
    "default_reviewers",
    dict(ACCOUNT_FIELDS),
    description="Reviewers added to every new pull request",
)

REPOSITORY_DOWNLOADS = _repository_collection(
    "bitbucket_repository_downloads",
    ("downloads",),
    "downloads",
    {
        "name": string(),
        "size": integer(),
        "downloads": integer(),
        "created_on": string(),
        "user": account("user"),
        "link": href("links.self"),
    },
    description="Download artifacts of a repository",
)

BRANCH_RESTRICTIONS = _repository_collection(
    "bitbucket_branch_restrictions",
    ("branch-restrictions",),
    "restrictions",
    {
        "id": integer(),
        "kind": string(),
        "branch_match_kind": string(),
        "branch_type": string(),
        "pattern": string(),
        "value": integer(),
        "users": items(dict(ACCOUNT_FIELDS)),
        "groups": items({"name": string(), "slug": string()}),
    },
    queries=(
        query("kind", "Only restrictions of this kind"),
        query("pattern", "Only restrictions applying to this branch pattern"),
    ),
    description="Branch permissions of a repository",
)

BRANCH_SETTING = {
    "name": string(),
    "use_mainbranch": boolean(),
    "is_valid": boolean(),
    "enabled": boolean(),
    "branch": string("branch.name"),
}

BRANCHING_MODEL = EndpointDescriptor(
    name="bitbucket_branching_model",
    description="The branching model of a repository",
    path_template=repository_path("branching-model"),
    inputs=(WORKSPACE, REPO_SLUG),
    projection=Block(
        fields={
            "development": block(dict(BRANCH_SETTING), source="development"),
            "production": block(dict(BRANCH_SETTING), source="production"),
            "branch_types": items({"kind": string(), "prefix": string()}),
        }
    ),
    id_rule="{workspace}/{repo_slug}/branching-model",
    not_found_message=REPOSITORY_NOT_FOUND,
)

REPOSITORY_SETTINGS = EndpointDescriptor(
    name="bitbucket_repository_settings",
    description="Settings of a repository, with its project and main branch as flat maps",
    path_template=repository_path(),
    inputs=(WORKSPACE, REPO_SLUG),
    projection=Block(
        fields={
            "name": string(),
            "description": string(),
            "is_private": boolean(),
            "fork_policy": string(),
            "language": string(),
            "has_issues": boolean(),
            "has_wiki": boolean(),
            "size": integer(),
            "updated_on": string(),
            "created_on": string(),
            "scm": string(),
            "website": string(),
            "project": string_map(),
            "mainbranch": string_map(),
            "links": string_map(),
        }
    ),
    id_rule="{workspace}/{repo_slug}",
    not_found_message=REPOSITORY_NOT_FOUND,
)

ADDONS = EndpointDescriptor(
    name="bitbucket_addons",
    description="Apps installed for a repository",
    path_template=repository_path("addon"),
    inputs=(WORKSPACE, REPO_SLUG),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "addons": items(
                {
                    "addon_key": string(),
                    "name": string(),
                    "description": string(),
                    "vendor": string_map(),
                    "app_info": string_map(),
                    "installed": boolean(),
                    "enabled": boolean(),
                    "links": string_map(),
                }
            )
        }
    ),
    collection="addons",
    id_rule="{workspace}/{repo_slug}/addons",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

DESCRIPTORS = (
    REPOSITORY,
    REPOSITORY_SETTINGS,
    ADDONS,
    REPOSITORY_PERMISSIONS,
    REPOSITORY_VARIABLES,
    REPOSITORY_DEPLOY_KEYS,
    REPOSITORY_HOOKS,
    REPOSITORY_FORKS,
    REPOSITORY_WATCHERS,
    REPOSITORY_DEFAULT_REVIEWERS,
    REPOSITORY_DOWNLOADS,
    BRANCH_RESTRICTIONS,
    BRANCHING_MODEL,
)

