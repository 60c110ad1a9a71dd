from bitbucket_provider.sources.external.bitbucket.descriptor import (
    EndpointDescriptor,
    InputSpec,
    ResponseShape,
    ShapeSwitch,
    one_of,
    requires,
)
from bitbucket_provider.sources.external.bitbucket.descriptors.common import (
    REPO_SLUG,
    WORKSPACE,
    flag,
    query,
    repository_path,
)
from bitbucket_provider.sources.external.bitbucket.schema import (
    SOURCE_RAW_BASE64,
    SOURCE_RAW_TEXT,
    SOURCE_SELF,
    Block,
    block,
    href,
    integer,
    string,
)

FILE_METADATA = block(
    {
        "path": string(),
        "type": string(),
        "escaped_path": string(),
        "mime_type": string("mimetype"),
        "size": integer(),
        "commit": block(
            {
                "type": string(),
                "hash": string(),
                "link": block(
                    {"self": href("self"), "html": href("html")},
                    source="links",
                    when=("include_commit", "include_commit_links"),
                ),
            },
            source="commit",
            when=("include_commit",),
        ),
        "link": block(
            {"self": href("self"), "meta": href("meta"), "history": href("history")},
            source="links",
            when=("include_links",),
        ),
    },
    source=SOURCE_SELF,
    description="Parsed metadata of the path, when format is meta",
)

FILE = EndpointDescriptor(
    name="bitbucket_file",
    description="File content or metadata at a commit",
    path_template=repository_path("src", "{commit}", "{path*}"),
    inputs=(
        WORKSPACE,
        REPO_SLUG,
        InputSpec(name="commit", description="Commit hash or branch name"),
        InputSpec(name="path", description="Path to the file, starting from the repository root"),
        flag("include_links", "Whether to include the links of the file metadata"),
        flag("include_commit", "Whether to include the commit of the file metadata"),
        flag("include_commit_links", "Whether to include the commit links of the file metadata"),
    ),
    queries=(
        query(
            "format",
            "raw returns the file content, meta its metadata",
            default="raw",
            validators=(one_of("meta", "raw"),),
        ),
    ),
    response_shape=ResponseShape.RAW,
    shape_switch=ShapeSwitch("format", "meta", ResponseShape.SINGLE),
    projection=Block(
        fields={
            "content": string(SOURCE_RAW_TEXT, "Raw string content of the path, not escaped"),
            "content_b64": string(SOURCE_RAW_BASE64, "Base64 encoded content of the path"),
            "metadata": FILE_METADATA,
        }
    ),
    rules=(requires("include_commit_links", "include_commit"),),
    id_rule="{commit}/{path}",
    not_found_message="unable to locate file {path} at {commit} in repository {workspace}/{repo_slug}",
)

DESCRIPTORS = (FILE,)
