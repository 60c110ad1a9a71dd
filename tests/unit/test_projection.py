"""
Projection of decoded JSON and raw bodies into attribute trees.
"""

import base64

import pytest  # type: ignore

from bitbucket_provider.exceptions import DecodeError
from bitbucket_provider.sources.external.bitbucket.descriptors.files import FILE
from bitbucket_provider.sources.external.bitbucket.projection import (
    coerce_leaf,
    project_document,
    project_node,
    stringify,
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
    list_of,
    number,
    string,
    string_map,
)


class TestLeaves:
    @pytest.mark.parametrize(
        "kind, value, expected",
        [
            (LeafKind.STRING, "x", "x"),
            (LeafKind.INT, 3, 3),
            (LeafKind.INT, 3.9, 3),
            (LeafKind.FLOAT, 2, 2.0),
            (LeafKind.BOOL, False, False),
            (LeafKind.STRING, None, ""),
            (LeafKind.INT, None, 0),
            (LeafKind.FLOAT, None, 0.0),
            (LeafKind.BOOL, None, False),
        ],
    )
    def test_coercion(self, kind, value, expected):
        assert coerce_leaf(kind, value, "field") == expected

    @pytest.mark.parametrize(
        "kind, value",
        [
            (LeafKind.STRING, 1),
            (LeafKind.INT, "1"),
            (LeafKind.INT, True),
            (LeafKind.FLOAT, False),
            (LeafKind.BOOL, "true"),
            (LeafKind.INT, {"a": 1}),
        ],
    )
    def test_mismatch_is_a_decode_error(self, kind, value):
        with pytest.raises(DecodeError, match="cannot project field"):
            coerce_leaf(kind, value, "field")

    def test_non_finite_number(self):
        with pytest.raises(DecodeError, match="non-finite"):
            coerce_leaf(LeafKind.INT, float("inf"), "size")


class TestContainers:
    def test_scalar_map_stringifies_nested_members(self):
        node = string_map()
        value = {"name": "main", "count": 3, "flag": True, "nested": {"a": [1, 2]}, "nothing": None}

        assert project_node(node, value, {}, "source") == {
            "name": "main",
            "count": "3",
            "flag": "true",
            "nested": '{"a":[1,2]}',
            "nothing": "",
        }

    def test_scalar_map_null_is_empty(self):
        assert project_node(string_map(), None, {}, "source") == {}

    def test_list_null_and_empty(self):
        assert project_node(list_of(string()), None, {}, "tags") == []
        assert project_node(list_of(string()), [], {}, "tags") == []

    def test_list_of_blocks_are_plain_mappings(self):
        node = items({"hash": string(), "type": string()})
        assert project_node(node, [{"hash": "a", "type": "commit", "extra": 1}], {}, "parents") == [
            {"hash": "a", "type": "commit"}
        ]

    def test_block_present_is_a_singleton(self):
        node = block({"name": string()})
        assert project_node(node, {"name": "PROJ"}, {}, "project") == [{"name": "PROJ"}]

    def test_block_absent_is_empty(self):
        node = block({"name": string()})
        assert project_node(node, None, {}, "project") == []

    def test_block_rejects_more_items_than_allowed(self):
        node = block({"name": string()})
        with pytest.raises(DecodeError):
            project_node(node, [{"name": "a"}, {"name": "b"}], {}, "project")

    def test_list_rejects_objects(self):
        with pytest.raises(DecodeError, match="expected array"):
            project_node(list_of(string()), {"a": 1}, {}, "tags")

    def test_stringify_is_compact(self):
        assert stringify({"a": [1, "b"]}) == '{"a":[1,"b"]}'


class TestDocuments:
    SCHEMA = Block(
        fields={
            "name": string(),
            "size": integer(),
            "score": number(),
            "private": boolean("is_private"),
            "main_branch": string("mainbranch.name"),
            "owner": block({"display_name": string(), "uuid": string()}, source="owner"),
            "links": string_map(),
            "secret": string(when=("reveal",)),
        }
    )

    def test_literal_mappings_and_zero_values(self):
        document = {
            "name": "r",
            "size": 10,
            "score": 1,
            "is_private": True,
            "mainbranch": {"name": "main"},
            "owner": {"display_name": "Alice", "uuid": "{a}"},
            "secret": "hidden",
        }

        assert project_document(self.SCHEMA, document, {"reveal": False}) == {
            "name": "r",
            "size": 10,
            "score": 1.0,
            "private": True,
            "main_branch": "main",
            "owner": [{"display_name": "Alice", "uuid": "{a}"}],
            "links": {},
            "secret": "",
        }

    def test_predicated_attribute_is_populated_when_enabled(self):
        result = project_document(self.SCHEMA, {"secret": "shown"}, {"reveal": True})
        assert result["secret"] == "shown"

    def test_missing_nested_path_gives_zero(self):
        result = project_document(self.SCHEMA, {"mainbranch": None}, {})
        assert result["main_branch"] == ""
        assert result["owner"] == []

    def test_document_must_be_an_object(self):
        with pytest.raises(DecodeError, match="expected object"):
            project_document(self.SCHEMA, [1, 2], {})


class TestRawBodies:
    SCHEMA = Block(fields={"content": string(SOURCE_RAW_TEXT), "content_b64": string(SOURCE_RAW_BASE64)})

    def test_text_and_base64(self):
        result = project_document(self.SCHEMA, None, {}, raw=b"hello\n")
        assert result == {"content": "hello\n", "content_b64": "aGVsbG8K"}

    def test_base64_round_trips_binary_bodies(self):
        body = bytes(range(256))
        result = project_document(self.SCHEMA, None, {}, raw=body)
        assert base64.b64decode(result["content_b64"]) == body
        assert "�" in result["content"]

    def test_raw_fields_are_zero_for_json_documents(self):
        result = project_document(FILE.projection, {"path": "README.md", "type": "commit_file"}, {})
        assert result["content"] == ""
        assert result["content_b64"] == ""
        assert result["metadata"][0]["path"] == "README.md"


class TestFileMetadata:
    DOCUMENT = {
        "path": "README.md",
        "type": "commit_file",
        "escaped_path": "README.md",
        "mimetype": "text/markdown",
        "size": 6,
        "commit": {
            "type": "commit",
            "hash": "abc",
            "links": {"self": {"href": "https://api/c"}, "html": {"href": "https://web/c"}},
        },
        "links": {"self": {"href": "https://api/f"}, "meta": {"href": "https://api/m"}, "history": {"href": "https://api/h"}},
    }

    def test_flags_off(self):
        flags = {"include_links": False, "include_commit": False, "include_commit_links": False}
        metadata = project_document(FILE.projection, self.DOCUMENT, flags)["metadata"][0]

        assert metadata["mime_type"] == "text/markdown"
        assert metadata["size"] == 6
        assert metadata["commit"] == []
        assert metadata["link"] == []

    def test_flags_on(self):
        flags = {"include_links": True, "include_commit": True, "include_commit_links": True}
        metadata = project_document(FILE.projection, self.DOCUMENT, flags)["metadata"][0]

        assert metadata["commit"][0]["hash"] == "abc"
        assert metadata["commit"][0]["link"] == [{"self": [{"href": "https://api/c"}], "html": [{"href": "https://web/c"}]}]
        assert metadata["link"][0]["history"] == [{"href": "https://api/h"}]

    def test_commit_without_links(self):
        flags = {"include_links": False, "include_commit": True, "include_commit_links": False}
        metadata = project_document(FILE.projection, self.DOCUMENT, flags)["metadata"][0]

        assert metadata["commit"] == [{"type": "commit", "hash": "abc", "link": []}]
