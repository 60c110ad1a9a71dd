from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    Q,
    SORT,
    WORKSPACE,
    WORKSPACE_NOT_FOUND,
    account,
    html_link,
    required,
    workspace_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import Block, boolean, items, string

PROJECT_FIELDS = {
    "key": string(),
    "name": string(),
    "description": string(),
    "uuid": string(),
    "is_private": boolean(),
    "has_publicly_visible_repos": boolean(),
    "created_on": string(),
    "updated_on": string(),
}

PROJECT = EndpointDescriptor(
    name="bitbucket_project",
    description="A project of a workspace",
    path_template=workspace_path("projects", "{project_key}"),
    inputs=(WORKSPACE, required("project_key", "Project key")),
    projection=Block(fields={**PROJECT_FIELDS, "owner": account("owner"), "link": html_link()}),
    id_rule="{workspace}/{project_key}",
    not_found_message="unable to locate project {project_key} in workspace {workspace}",
)

PROJECTS = EndpointDescriptor(
    name="bitbucket_projects",
    description="Projects of a workspace",
    path_template=workspace_path("projects"),
    inputs=(WORKSPACE,),
    queries=(Q, SORT),
    response_shape=ResponseShape.PAGED,
    projection=Block(fields={"projects": items(dict(PROJECT_FIELDS))}),
    collection="projects",
    id_rule="{workspace}/projects",
    not_found_message=WORKSPACE_NOT_FOUND,
    parent_mandatory=True,
)

DESCRIPTORS = (PROJECT, PROJECTS)
