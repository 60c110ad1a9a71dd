from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    Q,
    WORKSPACE,
    WORKSPACE_NOT_FOUND,
    required,
    workspace_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    Block,
    boolean,
    items,
    string,
    string_map,
)

GROUP_SLUG = required("group_slug", "Group slug")
GROUP_NOT_FOUND = "unable to locate group {group_slug} in workspace {workspace}"

GROUP_FIELDS = {
    "uuid": string(),
    "name": string(),
    "slug": string(),
    "description": string(),
    "is_private": boolean(),
    "created_on": string(),
    "updated_on": string(),
    "workspace": string_map(),
    "links": string_map(),
}

GROUP = EndpointDescriptor(
    name="bitbucket_group",
    description="A user group of a workspace",
    path_template=workspace_path("groups", "{group_slug}"),
    inputs=(WORKSPACE, GROUP_SLUG),
    projection=Block(fields=dict(GROUP_FIELDS)),
    id_rule="{workspace}/{group_slug}",
    not_found_message=GROUP_NOT_FOUND,
)

GROUPS = EndpointDescriptor(
    name="bitbucket_groups",
    description="User groups of a workspace",
    path_template=workspace_path("groups"),
    inputs=(WORKSPACE,),
    queries=(Q,),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"groups": items(dict(GROUP_FIELDS))}),
    collection="groups",
    id_rule="{workspace}/groups",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

GROUP_MEMBERS = EndpointDescriptor(
    name="bitbucket_group_members",
    description="Accounts belonging to a group",
    path_template=workspace_path("groups", "{group_slug}", "members"),
    inputs=(WORKSPACE, GROUP_SLUG),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "members": items(
                {
                    "username": string(),
                    "display_name": string(),
                    "uuid": string(),
                    "type": string(),
                    "nickname": string(),
                    "account_id": string(),
                    "created_on": string(),
                    "is_staff": boolean(),
                    "account_status": string(),
                    "links": string_map(),
                }
            )
        }
    ),
    collection="members",
    id_rule="{workspace}/groups/{group_slug}/members",
    not_found_message=GROUP_NOT_FOUND,
    parent_mandatory=True,
)

DESCRIPTORS = (GROUP, GROUPS, GROUP_MEMBERS)
