"""
Diagnostic rendering: templates, not-found summaries, redaction and body prefixes.
"""

import logging

import pytest  # type: ignore

from bitbucket_provider.exceptions import (
    AuthConfigError,
    DataSourceError,
    ErrorCategory,
    NotFoundError,
    ServerError,
)
from bitbucket_provider.sources.external.bitbucket.descriptors.refs import BRANCH
from bitbucket_provider.sources.external.bitbucket.descriptors.repositories import REPOSITORY
from bitbucket_provider.sources.external.bitbucket.diagnostics import (
    DETAIL_TEMPLATES,
    DiagnosticReporter,
    body_prefix,
)
from bitbucket_provider.utils.redaction import REDACTED

BRANCH_INPUTS = {"workspace": "w", "repo_slug": "r", "branch_name": "nope"}


class TestTemplates:
    def test_every_category_has_a_template(self):
        assert set(DETAIL_TEMPLATES) == set(ErrorCategory)

    def test_not_found_summary_names_child_and_parent(self):
        diagnostic = DiagnosticReporter().report(NotFoundError("resource not found (HTTP 404)", status_code=404), BRANCH, BRANCH_INPUTS)

        assert diagnostic.category == "not_found"
        assert diagnostic.severity == "error"
        assert diagnostic.summary == "unable to locate branch nope in repository w/r"
        assert diagnostic.endpoint == "bitbucket_branch"
        assert diagnostic.status_code == 404
        assert "HTTP status: 404" in diagnostic.detail

    def test_repository_not_found_summary(self):
        diagnostic = DiagnosticReporter().report(NotFoundError("gone"), REPOSITORY, {"workspace": "w", "repo_slug": "r"})
        assert diagnostic.summary == "unable to locate repository with slug/UUID r in workspace w"

    def test_other_categories_use_the_error_message(self):
        diagnostic = DiagnosticReporter().report(ServerError("server error HTTP 501", status_code=501), BRANCH, BRANCH_INPUTS)

        assert diagnostic.category == "server"
        assert diagnostic.summary == "server error HTTP 501"
        assert diagnostic.detail.startswith("bitbucket_branch: server error (server error HTTP 501). Inputs: ")

    def test_provider_level_error_without_descriptor(self):
        diagnostic = DiagnosticReporter().report(AuthConfigError("no credentials configured"))

        assert diagnostic.endpoint == "provider"
        assert diagnostic.category == "auth_config"
        assert diagnostic.status_code is None


class TestRedaction:
    def test_secret_named_inputs_are_masked(self, faker_instance):
        secret = faker_instance.password(length=24)
        diagnostic = DiagnosticReporter().report(
            DataSourceError("boom"),
            endpoint="bitbucket_thing",
            inputs={"workspace": "w", "api_token": secret, "deploy_key": secret},
        )

        assert secret not in diagnostic.detail
        assert f'"api_token": "{REDACTED}"' in diagnostic.detail
        assert '"workspace": "w"' in diagnostic.detail

    def test_reporter_log_line_carries_no_secret(self, faker_instance, caplog):
        secret = faker_instance.password(length=24)
        logger = logging.getLogger("tests.diagnostics")
        caplog.set_level(logging.ERROR, logger="tests.diagnostics")

        DiagnosticReporter(logger=logger).report(DataSourceError("boom"), endpoint="x", inputs={"password": secret})

        assert "x failed [client]: boom" in caplog.text
        assert secret not in caplog.text


class TestBodyPrefix:
    def test_short_body_is_kept(self):
        assert body_prefix(b'{"error": {}}', 2048) == '{"error": {}}'

    def test_long_body_is_truncated(self):
        assert body_prefix(b"a" * 10, 4) == "aaaa... (10 bytes total)"

    @pytest.mark.parametrize("body, limit", [(None, 10), (b"", 10), (b"abc", 0)])
    def test_nothing_to_show(self, body, limit):
        assert body_prefix(body, limit) == ""

    def test_detail_embeds_a_bounded_prefix(self):
        error = ServerError("server error HTTP 501", status_code=501, body=b"x" * 5000)
        diagnostic = DiagnosticReporter(prefix_limit=16).report(error, BRANCH, BRANCH_INPUTS)

        assert diagnostic.detail.endswith("Response: " + "x" * 16 + "... (5000 bytes total)")
