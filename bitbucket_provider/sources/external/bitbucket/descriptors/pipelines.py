from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    REPO_SLUG,
    REPOSITORY_NOT_FOUND,
    SORT,
    WORKSPACE,
    WORKSPACE_NOT_FOUND,
    account,
    query,
    required,
    repository_path,
    workspace_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    Block,
    block,
    boolean,
    integer,
    items,
    list_of,
    string,
    string_map,
)

PIPELINE_NOT_FOUND = "unable to locate pipeline {pipeline_number} in repository {workspace}/{repo_slug}"

PIPELINE = EndpointDescriptor(
    name="bitbucket_pipeline",
    description="A pipeline run, by build number or UUID",
    path_template=repository_path("pipelines", "{pipeline_number}"),
    inputs=(WORKSPACE, REPO_SLUG, required("pipeline_number", "Pipeline build number or UUID")),
    projection=Block(
        fields={
            "uuid": string(),
            "build_number": integer(),
            "state": string("state.name"),
            "result": string("state.result.name"),
            "created_on": string(),
            "completed_on": string(),
            "duration_in_seconds": integer(),
            "build_seconds_used": integer(),
            "trigger": block({"type": string(), "name": string()}, source="trigger"),
            "creator": account("creator"),
            "target": block(
                {
                    "type": string(),
                    "ref_type": string(),
                    "ref_name": string(),
                    "hash": string("commit.hash"),
                },
                source="target",
            ),
        }
    ),
    id_rule="{workspace}/{repo_slug}/{response.uuid}",
    not_found_message=PIPELINE_NOT_FOUND,
)

PIPELINES = EndpointDescriptor(
    name="bitbucket_pipelines",
    description="Pipeline runs of a repository",
    path_template=repository_path("pipelines"),
    inputs=(WORKSPACE, REPO_SLUG),
    queries=(
        query("state", "Only pipelines in this state"),
        query("target", "Only pipelines for this target branch"),
        SORT,
    ),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "pipelines": items(
                {
                    "uuid": string(),
                    "build_number": integer(),
                    "state": string_map(),
                    "trigger": string_map(),
                    "target": string_map(),
                    "created_on": string(),
                    "completed_on": string(),
                    "duration_in_seconds": integer(),
                    "build_seconds_used": integer(),
                    "first_successful": boolean(),
                    "expired": boolean(),
                    "repository": string("repository.full_name"),
                }
            )
        }
    ),
    collection="pipelines",
    id_rule="{workspace}/{repo_slug}/pipelines",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

PIPELINE_STEPS = EndpointDescriptor(
    name="bitbucket_pipeline_steps",
    description="Steps of a pipeline run",
    path_template=repository_path("pipelines", "{pipeline_uuid}", "steps"),
    inputs=(WORKSPACE, REPO_SLUG, required("pipeline_uuid", "Pipeline UUID or build number")),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "steps": items(
                {
                    "uuid": string(),
                    "name": string(),
                    "type": string(),
                    "state": string("state.name"),
                    "result": string("state.result.name"),
                    "started_on": string(),
                    "completed_on": string(),
                    "duration_in_seconds": integer(),
                    "max_time": integer(),
                    "image": string("image.name"),
                    "script": list_of(string_map(), source="script_commands"),
                }
            )
        }
    ),
    collection="steps",
    id_rule="{workspace}/{repo_slug}/pipelines/{pipeline_uuid}/steps",
    not_found_message="unable to locate pipeline {pipeline_uuid} in repository {workspace}/{repo_slug}",
    parent_mandatory=True,
)

PIPELINE_SCHEDULES = EndpointDescriptor(
    name="bitbucket_pipeline_schedules",
    description="Scheduled pipeline triggers of a repository",
    path_template=repository_path("pipelines_config", "schedules"),
    inputs=(WORKSPACE, REPO_SLUG),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "schedules": items(
                {
                    "uuid": string(),
                    "enabled": boolean(),
                    "cron_pattern": string(),
                    "target": block(
                        {
                            "ref_type": string(),
                            "ref_name": string(),
                            "selector_type": string("selector.type"),
                            "selector_pattern": string("selector.pattern"),
                        },
                        source="target",
                    ),
                    "created_on": string(),
                    "updated_on": string(),
                }
            )
        }
    ),
    collection="schedules",
    id_rule="{workspace}/{repo_slug}/pipelines_config/schedules",
    not_found_message="unable to locate pipeline schedules for repository {repo_slug}",
    parent_mandatory=True,
)

DEPLOYMENT_ENVIRONMENTS = EndpointDescriptor(
    name="bitbucket_deployment_environments",
    description="Deployment environments of a repository",
    path_template=repository_path("environments"),
    inputs=(WORKSPACE, REPO_SLUG),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "environments": items(
                {
                    "uuid": string(),
                    "name": string(),
                    "slug": string(),
                    "rank": integer(),
                    "hidden": boolean(),
                    "environment_type": string("environment_type.name"),
                    "lock": string("lock.name"),
                }
            )
        }
    ),
    collection="environments",
    id_rule="{workspace}/{repo_slug}/environments",
    not_found_message=REPOSITORY_NOT_FOUND,
    parent_mandatory=True,
)

DEPLOYMENTS = EndpointDescriptor(
    name="bitbucket_deployments",
    description="Deployments of a repository",
    path_template=repository_path("deployments"),
    inputs=(WORKSPACE, REPO_SLUG),
    response_shape=ResponseShape.PAGED,
    projection=Block(
        fields={
            "deployments": items(
                {
                    "uuid": string(),
                    "state": string("state.name"),
                    "status": string("state.status.name"),
                    "environment": string("environment.uuid"),
                    "release_name": string("release.name"),
                    "commit": string("release.commit.hash"),
                    "started_on": string("state.started_on"),
                    "completed_on": string("state.completed_on"),
                }
            )
        }
    ),
    collection="deployments",
    id_rule="{workspace}/{repo_slug}/deployments",
    not_found_message="unable to locate pipeline deployments for repository {repo_slug}",
    parent_mandatory=True,
)

DEPLOYMENT = EndpointDescriptor(
    name="bitbucket_deployment",
    description="A deployment environment of a repository, by UUID",
    path_template=repository_path("environments", "{uuid}"),
    inputs=(WORKSPACE, REPO_SLUG, required("uuid", "Environment UUID")),
    projection=Block(
        fields={
            "name": string(),
            "slug": string(),
            "rank": integer(),
            "hidden": boolean(),
            "stage": string("environment_type.name"),
        }
    ),
    id_rule="{workspace}/{repo_slug}/{uuid}",
    not_found_message="unable to locate deployment environment {uuid} in repository {workspace}/{repo_slug}",
)

OIDC_PATH = workspace_path("pipelines-config", "identity", "oidc")

PIPELINE_OIDC_CONFIG = EndpointDescriptor(
    name="bitbucket_pipeline_oidc_config",
    description="OpenID Connect discovery document Pipelines publishes for a workspace",
    path_template=OIDC_PATH + (".well-known", "openid-configuration"),
    inputs=(WORKSPACE,),
    projection=Block(
        fields={
            "issuer": string(),
            "jwks_uri": string(),
            "subject_types_supported": list_of(string()),
            "response_types_supported": list_of(string()),
            "claims_supported": list_of(string()),
            "id_token_signing_alg_values_supported": list_of(string()),
            "scopes_supported": list_of(string()),
        }
    ),
    id_rule="{workspace}/oidc",
    not_found_message=WORKSPACE_NOT_FOUND,
)

PIPELINE_OIDC_CONFIG_KEYS = EndpointDescriptor(
    name="bitbucket_pipeline_oidc_config_keys",
    description="Keys that sign the OpenID Connect tokens of Pipelines steps",
    path_template=OIDC_PATH + ("keys.json",),
    inputs=(WORKSPACE,),
    projection=Block(
        fields={
            "keys": items(
                {
                    "kid": string(),
                    "kty": string(),
                    "alg": string(),
                    "use": string(),
                    "n": string(),
                    "e": string(),
                }
            )
        }
    ),
    id_rule="{workspace}/oidc/keys",
    not_found_message=WORKSPACE_NOT_FOUND,
)

DESCRIPTORS = (
    PIPELINE,
    PIPELINES,
    PIPELINE_STEPS,
    PIPELINE_SCHEDULES,
    DEPLOYMENT_ENVIRONMENTS,
    DEPLOYMENT,
    DEPLOYMENTS,
    PIPELINE_OIDC_CONFIG,
    PIPELINE_OIDC_CONFIG_KEYS,
)
