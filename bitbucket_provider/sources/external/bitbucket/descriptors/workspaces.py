from bitbucket_provider.sources.external.bitbucket.descriptor import (
    EndpointDescriptor,
    InputSpec,
    ResponseShape,
    one_of,
)
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    API_VERSION,
    Q,
    SORT,
    WORKSPACE,
    WORKSPACE_NOT_FOUND,
    account,
    html_link,
    query,
    workspace_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    Block,
    boolean,
    items,
    list_of,
    string,
)

WORKSPACE_FIELDS = {
    "name": string(),
    "slug": string(),
    "uuid": string(),
    "type": string(),
    "is_private": boolean(),
    "created_on": string(),
    "link": html_link(),
}

WORKSPACE_DETAIL = EndpointDescriptor(
    name="bitbucket_workspace",
    description="A workspace",
    path_template=workspace_path(),
    inputs=(WORKSPACE,),
    projection=Block(fields=WORKSPACE_FIELDS),
    id_rule="{workspace}",
    not_found_message=WORKSPACE_NOT_FOUND,
)

WORKSPACES = EndpointDescriptor(
    name="bitbucket_workspaces",
    description="Workspaces the authenticated user can access",
    path_template=(API_VERSION, "workspaces"),
    queries=(
        query("role", "Only workspaces where the user has this role", validators=(one_of("member", "collaborator", "owner"),)),
        Q,
        SORT,
    ),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"workspaces": items(dict(WORKSPACE_FIELDS))}),
    collection="workspaces",
    id_rule="workspaces",
)

WORKSPACE_MEMBERS = EndpointDescriptor(
    name="bitbucket_workspace_members",
    description="Members of a workspace",
    path_template=workspace_path("members"),
    inputs=(WORKSPACE,),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "members": items(
                {
                    "display_name": string("user.display_name"),
                    "uuid": string("user.uuid"),
                    "account_id": string("user.account_id"),
                    "nickname": string("user.nickname"),
                }
            )
        }
    ),
    collection="members",
    id_rule="{workspace}/members",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

WORKSPACE_PERMISSIONS = EndpointDescriptor(
    name="bitbucket_workspace_permissions",
    description="Permissions granted to members of a workspace",
    path_template=workspace_path("permissions"),
    inputs=(WORKSPACE,),
    queries=(Q,),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "permissions": items(
                {
                    "permission": string(),
                    "user": account("user"),
                    "workspace_slug": string("workspace.slug"),
                }
            )
        }
    ),
    collection="permissions",
    id_rule="{workspace}/permissions",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

WORKSPACE_VARIABLES = EndpointDescriptor(
    name="bitbucket_workspace_variables",
    description="Pipelines variables defined at workspace level",
    path_template=workspace_path("pipelines-config", "variables"),
    inputs=(WORKSPACE,),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "variables": items(
                {
                    "uuid": string(),
                    "key": string(),
                    "value": string(),
                    "secured": boolean(),
                }
            )
        }
    ),
    collection="variables",
    id_rule="{workspace}/pipelines-config/variables",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

WEBHOOKS = EndpointDescriptor(
    name="bitbucket_webhooks",
    description="Webhooks installed on a workspace",
    path_template=workspace_path("hooks"),
    inputs=(WORKSPACE,),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "webhooks": items(
                {
                    "uuid": string(),
                    "url": string(),
                    "description": string(),
                    "subject_type": string(),
                    "active": boolean(),
                    "created_at": string(),
                    "events": list_of(string()),
                }
            )
        }
    ),
    collection="webhooks",
    id_rule="{workspace}/hooks",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

HOOK_TYPES = EndpointDescriptor(
    name="bitbucket_hook_types",
    description="Webhook events a repository or workspace can subscribe to",
    path_template=(API_VERSION, "hook_events", "{subject_type}"),
    inputs=(
        InputSpec(
            name="subject_type",
            validators=(one_of("repository", "workspace"),),
            description="Whether events of repositories or of workspaces are listed",
        ),
    ),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "hook_types": items(
                {
                    "event": string(),
                    "category": string(),
                    "label": string(),
                    "description": string(),
                }
            )
        }
    ),
    collection="hook_types",
    id_rule="hook_events/{subject_type}",
)

DESCRIPTORS = (
    WORKSPACE_DETAIL,
    WORKSPACES,
    WORKSPACE_MEMBERS,
    WORKSPACE_PERMISSIONS,
    WORKSPACE_VARIABLES,
    WEBHOOKS,
    HOOK_TYPES,
)
