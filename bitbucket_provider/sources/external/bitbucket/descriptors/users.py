from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    API_VERSION,
    Q,
    html_link,
    required,
)
from bitbucket_provider.sources.external.bitbucket.schema import Block, boolean, items, string, string_map

USER_FIELDS = {
    "username": string(),
    "display_name": string(),
    "uuid": string(),
    "account_id": string(),
    "nickname": string(),
    "account_status": string(),
    "type": string(),
    "created_on": string(),
    "location": string(),
    "is_staff": boolean(),
    "link": html_link(),
}

CURRENT_USER = EndpointDescriptor(
    name="bitbucket_current_user",
    description="The user the provider credentials authenticate as",
    path_template=(API_VERSION, "user"),
    projection=Block(fields=USER_FIELDS),
    id_rule="{response.uuid}",
)

USER = EndpointDescriptor(
    name="bitbucket_user",
    description="A user by UUID or Atlassian account id",
    path_template=(API_VERSION, "users", "{selected_user}"),
    inputs=(required("selected_user", "User UUID (with braces) or Atlassian account id"),),
    projection=Block(fields=USER_FIELDS),
    id_rule="{response.uuid}",
    not_found_message="unable to locate user {selected_user}",
)

USERS = EndpointDescriptor(
    name="bitbucket_users",
    description="Users visible to the provider credentials",
    path_template=(API_VERSION, "users"),
    queries=(Q,),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "users": items(
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
    collection="users",
    id_rule="users",
)

DESCRIPTORS = (CURRENT_USER, USER, USERS)
