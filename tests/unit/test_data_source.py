"""
Read orchestration: descriptor lookup, shapes, 404 policy and deadlines.
"""

import asyncio
import logging

import httpx  # type: ignore
import pytest  # type: ignore

from bitbucket_provider.config.provider_config import PipelineSettings
from bitbucket_provider.sources.client.http.read_context import ReadContext
from tests.utils.bitbucket_stub import error_response, json_response, page

REPO = {"workspace": "w", "repo_slug": "r"}
REPOSITORY_PATH = "/2.0/repositories/w/r"
REPOSITORY_BODY = {
    "name": "r",
    "full_name": "w/r",
    "uuid": "{repo-uuid}",
    "scm": "git",
    "is_private": True,
    "size": 1024,
    "mainbranch": {"name": "main", "type": "branch"},
    "owner": {"display_name": "Team W", "uuid": "{w}", "type": "team"},
    "project": {"key": "PROJ", "name": "Project", "uuid": "{p}"},
    "links": {"html": {"href": "https://bitbucket.org/w/r"}, "avatar": {"href": "https://avatar"}},
}


class TestSingleReads:
    @pytest.mark.asyncio
    async def test_repository(self, stub, make_data_source):
        stub.add(REPOSITORY_PATH, json_response(200, REPOSITORY_BODY))

        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        assert result.success
        assert result.id == "{repo-uuid}"
        assert result.attributes["workspace"] == "w"
        assert result.attributes["main_branch"] == "main"
        assert result.attributes["owner"] == [
            {"username": "", "display_name": "Team W", "uuid": "{w}", "account_id": "", "nickname": ""}
        ]
        assert result.attributes["project"][0]["key"] == "PROJ"
        assert result.attributes["description"] == ""

    @pytest.mark.asyncio
    async def test_reads_are_idempotent(self, stub, make_data_source):
        stub.add(REPOSITORY_PATH, json_response(200, REPOSITORY_BODY))
        data_source = make_data_source()

        first = await data_source.read(None, "bitbucket_repository", REPO)
        second = await data_source.read(None, "bitbucket_repository", REPO)

        assert first == second

    @pytest.mark.asyncio
    async def test_schema_mismatch_is_a_decode_diagnostic(self, stub, make_data_source):
        stub.add(REPOSITORY_PATH, json_response(200, {**REPOSITORY_BODY, "size": "big"}))

        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        assert not result.success
        assert result.attributes is None
        assert [d.category for d in result.diagnostics] == ["decode"]

    @pytest.mark.asyncio
    async def test_malformed_json(self, stub, make_data_source):
        stub.add(REPOSITORY_PATH, httpx.Response(200, content=b"<html>", headers={"Content-Type": "text/html"}))

        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        assert result.diagnostics[0].category == "decode"


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_data_source(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_nothing", {})

        assert result.diagnostics[0].category == "input_validation"
        assert result.diagnostics[0].summary == "unsupported data source bitbucket_nothing"
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_single_not_found(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].summary == "unable to locate repository with slug/UUID r in workspace w"

    @pytest.mark.asyncio
    async def test_paged_not_found_with_mandatory_parent(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_branches", REPO)

        assert result.diagnostics[0].category == "not_found"
        assert result.diagnostics[0].summary == "unable to locate repository w/r"

    @pytest.mark.asyncio
    async def test_paged_not_found_without_mandatory_parent(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_issues", REPO)

        assert result.success
        assert result.id == "w/r/issues"
        assert result.attributes["issues"] == []

    @pytest.mark.asyncio
    async def test_not_found_after_the_first_page_is_fatal(self, stub, make_data_source):
        stub.add(
            "/2.0/repositories/w/r/issues",
            page([{"id": 1, "title": "a"}], "https://api.bitbucket.org/2.0/repositories/w/r/issues/gone"),
        )

        result = await make_data_source().read(None, "bitbucket_issues", REPO)

        assert result.diagnostics[0].category == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_next_link_is_a_decode_diagnostic(self, stub, make_data_source):
        stub.add("/2.0/repositories/w/r/refs/branches", page([{"name": "main"}], "https://[::1"))

        result = await make_data_source().read(None, "bitbucket_branches", REPO)

        assert result.attributes is None
        assert [d.category for d in result.diagnostics] == ["decode"]
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_host_cancellation(self, stub, make_data_source):
        ctx = ReadContext()
        ctx.cancellation.cancel("plan interrupted")

        result = await make_data_source().read(ctx, "bitbucket_repository", REPO)

        assert result.diagnostics[0].category == "cancelled"
        assert result.diagnostics[0].summary == "plan interrupted"
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_read_deadline(self, stub, make_data_source):
        async def hang(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return json_response(200, REPOSITORY_BODY)

        stub.add(REPOSITORY_PATH, hang)
        data_source = make_data_source(settings_override=PipelineSettings(read_timeout=0.05))

        result = await data_source.read(None, "bitbucket_repository", REPO)

        assert result.diagnostics[0].category == "cancelled"
        assert "0.05s" in result.diagnostics[0].summary

    @pytest.mark.asyncio
    async def test_client_error_keeps_the_response_prefix(self, stub, make_data_source):
        stub.add(REPOSITORY_PATH, error_response(400, "Invalid slug"))

        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        diagnostic = result.diagnostics[0]
        assert diagnostic.category == "client"
        assert diagnostic.status_code == 400
        assert "Invalid slug" in diagnostic.detail


class TestLogging:
    @pytest.mark.asyncio
    async def test_no_credential_reaches_the_logs(self, stub, make_data_source, caplog):
        caplog.set_level(logging.DEBUG)
        stub.add(REPOSITORY_PATH, error_response(503), json_response(200, REPOSITORY_BODY))

        result = await make_data_source().read(None, "bitbucket_repository", REPO)

        assert result.success
        assert "attempt=1/5" in caplog.text
        assert "test-token" not in caplog.text

    @pytest.mark.asyncio
    async def test_cursor_secrets_stay_out_of_request_logs(self, stub, make_data_source, caplog, faker_instance):
        caplog.set_level(logging.DEBUG)
        secret = faker_instance.sha256()
        stub.add(
            "/2.0/repositories/w/r/refs/tags",
            page([{"name": "v1"}], f"https://api.bitbucket.org/2.0/repositories/w/r/refs/tags?page=2&access_token={secret}"),
            page([{"name": "v2"}]),
        )

        result = await make_data_source().read(None, "bitbucket_tags", REPO)

        assert [tag["name"] for tag in result.attributes["tags"]] == ["v1", "v2"]
        assert secret in str(stub.requests[1].url)
        assert secret not in caplog.text
        assert all(secret not in record.getMessage() for record in caplog.records)
        assert any(
            record.name == "httpx" and "access_token=***" in record.getMessage() for record in caplog.records
        )


class TestAddedDataSources:
    @pytest.mark.asyncio
    async def test_commit_reports_rename_external_id(self, stub, make_data_source):
        stub.add(
            "/2.0/repositories/w/r/commit/abc/reports",
            page([{"uuid": "{report}", "external_id": "lint-1", "title": "Lint", "result": "PASSED"}]),
        )

        result = await make_data_source().read(None, "bitbucket_commit_reports", {**REPO, "commit_sha": "abc"})

        assert result.id == "w/r/commit/abc/reports"
        report = result.attributes["reports"][0]
        assert report["report_id"] == "lint-1"
        assert report["result"] == "PASSED"

    @pytest.mark.asyncio
    async def test_missing_commit_is_fatal_for_its_approvals(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_commit_approvals", {**REPO, "commit": "abc"})

        assert result.diagnostics[0].category == "not_found"
        assert result.diagnostics[0].summary == "unable to locate commit abc in repository w/r"

    @pytest.mark.asyncio
    async def test_group_members(self, stub, make_data_source):
        stub.add(
            "/2.0/workspaces/w/groups/devs/members",
            page([{"display_name": "Alice", "uuid": "{alice}", "links": {"self": {"href": "https://api/u"}}}]),
        )

        result = await make_data_source().read(None, "bitbucket_group_members", {"workspace": "w", "group_slug": "devs"})

        assert result.id == "w/groups/devs/members"
        member = result.attributes["members"][0]
        assert member["display_name"] == "Alice"
        assert member["links"] == {"self": '{"href":"https://api/u"}'}

    @pytest.mark.asyncio
    async def test_hook_types_reject_unknown_subjects(self, stub, make_data_source):
        result = await make_data_source().read(None, "bitbucket_hook_types", {"subject_type": "team"})

        assert result.diagnostics[0].category == "input_validation"
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_ip_ranges_are_read_without_credentials(self, stub, make_data_source):
        stub.add(
            "/",
            json_response(
                200,
                {
                    "creationDate": "2026-10-01T00:00:00.000000",
                    "syncToken": "1759276800",
                    "items": [
                        {
                            "network": "104.192.136.0",
                            "mask_len": 21,
                            "cidr": "104.192.136.0/21",
                            "mask": "255.255.248.0",
                            "region": ["us-east-1"],
                            "product": ["bitbucket"],
                            "direction": ["egress"],
                        }
                    ],
                },
            ),
        )

        result = await make_data_source().read(None, "bitbucket_ip_ranges", {})

        assert result.id == "ip-ranges"
        assert result.attributes["sync_token"] == "1759276800"
        assert result.attributes["items"][0]["cidr"] == "104.192.136.0/21"
        assert result.attributes["items"][0]["product"] == ["bitbucket"]
        sent = stub.requests[0]
        assert sent.url.host == "ip-ranges.atlassian.com"
        assert "Authorization" not in sent.headers
