"""Tests for payload parsing and the IssueSource implementations."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from epicgraph.backends.jira import (
    FixtureIssueSource,
    IssueSource,
    MockIssueSource,
    RealIssueSource,
    epic_jql,
    parse_issue_detail,
    parse_issue_link,
    parse_issue_ref,
)
from epicgraph.errors import IssueSourceError, MalformedIssueError
from epicgraph.graph.models import LinkDirection
from epicgraph.state.config import JiraConfig

SAMPLE_ISSUE: dict[str, Any] = {
    "key": "PROP-301",
    "fields": {
        "summary": "[API] Refund endpoint",
        "status": {"name": "In Progress"},
        "parent": {"key": "PROP-292"},
        "assignee": {"displayName": "Ada Lovelace"},
        "issuelinks": [
            {
                "type": {"name": "Blocks", "inward": "is blocked by"},
                "outwardIssue": {
                    "key": "PROP-302",
                    "fields": {
                        "summary": "Till refund button",
                        "status": {"name": "To Do"},
                    },
                },
            },
            {
                "type": {"name": "Relates"},
                "inwardIssue": {
                    "key": "OPS-7",
                    "fields": {"summary": "Runbook", "status": {"name": "Done"}},
                },
            },
        ],
    },
}


def _response(payload: Any) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _config() -> JiraConfig:
    return JiraConfig(
        base_url="https://example.atlassian.net/",
        username="me@example.com",
        api_token="secret-token",
        timeout=12.0,
    )


class TestParsing:
    """Test the raw payload parse functions."""

    def test_parse_issue_ref(self) -> None:
        ref = parse_issue_ref(SAMPLE_ISSUE)
        assert ref.key == "PROP-301"
        assert ref.summary == "[API] Refund endpoint"
        assert ref.status == "In Progress"
        assert ref.assignee == "Ada Lovelace"
        assert ref.parent_key == "PROP-292"

    def test_parse_issue_ref_optional_fields(self) -> None:
        ref = parse_issue_ref(
            {
                "key": "A-1",
                "fields": {
                    "summary": "x",
                    "status": {"name": "To Do"},
                    "assignee": None,
                },
            }
        )
        assert ref.assignee is None
        assert ref.parent_key is None

    def test_parse_issue_ref_missing_key(self) -> None:
        with pytest.raises(MalformedIssueError) as exc_info:
            parse_issue_ref({"fields": {}})
        assert exc_info.value.field == "key"

    def test_parse_issue_ref_missing_summary(self) -> None:
        with pytest.raises(MalformedIssueError, match="A-1.*fields.summary"):
            parse_issue_ref({"key": "A-1", "fields": {"status": {"name": "To Do"}}})

    def test_parse_issue_link_outward(self) -> None:
        link = parse_issue_link(SAMPLE_ISSUE["fields"]["issuelinks"][0], "PROP-301")
        assert link.is_blocks
        assert link.direction == LinkDirection.outward
        assert link.issue.key == "PROP-302"

    def test_parse_issue_link_inward(self) -> None:
        link = parse_issue_link(SAMPLE_ISSUE["fields"]["issuelinks"][1], "PROP-301")
        assert not link.is_blocks
        assert link.direction == LinkDirection.inward
        assert link.issue.status == "Done"

    def test_parse_issue_link_without_issue(self) -> None:
        with pytest.raises(MalformedIssueError) as exc_info:
            parse_issue_link({"type": {"name": "Blocks"}}, "PROP-301")
        assert exc_info.value.key == "PROP-301"

    def test_parse_issue_link_missing_type(self) -> None:
        with pytest.raises(MalformedIssueError, match="type.name"):
            parse_issue_link({"outwardIssue": SAMPLE_ISSUE}, "PROP-301")

    def test_parse_issue_detail(self) -> None:
        detail = parse_issue_detail(SAMPLE_ISSUE)
        assert detail.parent_key == "PROP-292"
        assert [link.issue.key for link in detail.links] == ["PROP-302", "OPS-7"]

    def test_parse_issue_detail_without_links(self) -> None:
        detail = parse_issue_detail(
            {"key": "A-1", "fields": {"summary": "x", "status": {"name": "To Do"}}}
        )
        assert detail.links == []

    def test_epic_jql(self) -> None:
        assert epic_jql("PROP-292") == '"Epic Link" = PROP-292'


class TestRealIssueSource:
    """Test RealIssueSource against a mocked requests session."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(RealIssueSource(_config(), session=MagicMock()), IssueSource)

    def test_session_configured_with_basic_auth(self) -> None:
        session = MagicMock()
        session.headers = {}
        RealIssueSource(_config(), session=session)
        assert session.auth == ("me@example.com", "secret-token")
        assert session.headers["Accept"] == "application/json"

    def test_get_task_detail(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(SAMPLE_ISSUE)
        source = RealIssueSource(_config(), session=session)
        detail = source.get_task_detail("PROP-301")
        assert detail.key == "PROP-301"
        args, kwargs = session.get.call_args
        assert args[0] == "https://example.atlassian.net/rest/api/3/issue/PROP-301"
        assert kwargs["timeout"] == 12.0

    def test_list_tasks_in_epic_single_page(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(
            {"startAt": 0, "maxResults": 100, "total": 1, "issues": [SAMPLE_ISSUE]}
        )
        source = RealIssueSource(_config(), session=session)
        refs = source.list_tasks_in_epic("PROP-292")
        assert [r.key for r in refs] == ["PROP-301"]
        args, kwargs = session.get.call_args
        assert args[0] == "https://example.atlassian.net/rest/api/3/search"
        assert kwargs["params"]["jql"] == '"Epic Link" = PROP-292'
        assert "issuelinks" in kwargs["params"]["fields"]

    def test_list_tasks_in_epic_pages_until_total(self) -> None:
        second = dict(SAMPLE_ISSUE, key="PROP-303")
        session = MagicMock()
        session.get.side_effect = [
            _response({"startAt": 0, "total": 2, "issues": [SAMPLE_ISSUE]}),
            _response({"startAt": 1, "total": 2, "issues": [second]}),
        ]
        source = RealIssueSource(_config(), session=session)
        refs = source.list_tasks_in_epic("PROP-292")
        assert [r.key for r in refs] == ["PROP-301", "PROP-303"]
        start_ats = [c.kwargs["params"]["startAt"] for c in session.get.call_args_list]
        assert start_ats == [0, 1]

    def test_list_tasks_in_epic_without_issues(self) -> None:
        session = MagicMock()
        session.get.return_value = _response({"errorMessages": []})
        source = RealIssueSource(_config(), session=session)
        assert source.list_tasks_in_epic("PROP-292") == []

    def test_connection_error_raises_source_error(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")
        source = RealIssueSource(_config(), session=session)
        with pytest.raises(IssueSourceError) as exc_info:
            source.get_task_detail("PROP-301")
        assert exc_info.value.operation == "get_task_detail"
        assert exc_info.value.key == "PROP-301"
        assert "connection refused" in exc_info.value.reason

    def test_http_error_raises_source_error(self) -> None:
        response = _response({})
        response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        session = MagicMock()
        session.get.return_value = response
        source = RealIssueSource(_config(), session=session)
        with pytest.raises(IssueSourceError, match="401"):
            source.list_tasks_in_epic("PROP-292")

    def test_invalid_json_raises_source_error(self) -> None:
        response = _response(None)
        response.json.side_effect = ValueError("Expecting value")
        session = MagicMock()
        session.get.return_value = response
        source = RealIssueSource(_config(), session=session)
        with pytest.raises(IssueSourceError, match="invalid JSON"):
            source.get_task_detail("PROP-301")


class TestMockIssueSource:
    """Test the in-memory source used by builder tests."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MockIssueSource(), IssueSource)

    def test_records_calls(self) -> None:
        source = MockIssueSource(
            epics={"PROP-292": [SAMPLE_ISSUE]}, issues={"PROP-301": SAMPLE_ISSUE}
        )
        source.list_tasks_in_epic("PROP-292")
        source.get_task_detail("PROP-301")
        assert source.listed == ["PROP-292"]
        assert source.fetched == ["PROP-301"]

    def test_unknown_issue_raises(self) -> None:
        with pytest.raises(IssueSourceError, match="404"):
            MockIssueSource().get_task_detail("NOPE-1")

    def test_unknown_epic_is_empty(self) -> None:
        assert MockIssueSource().list_tasks_in_epic("NOPE-1") == []

    def test_fail_on(self) -> None:
        source = MockIssueSource(fail_on={"PROP-292"})
        with pytest.raises(IssueSourceError):
            source.list_tasks_in_epic("PROP-292")


class TestFixtureIssueSource:
    """Test the JSON snapshot source."""

    def _write(self, tmp_path: Path) -> Path:
        path = tmp_path / "snapshot.json"
        path.write_text(
            json.dumps(
                {
                    "epics": {"PROP-292": [SAMPLE_ISSUE]},
                    "issues": {"PROP-301": SAMPLE_ISSUE},
                }
            )
        )
        return path

    def test_satisfies_protocol(self, tmp_path: Path) -> None:
        assert isinstance(FixtureIssueSource(self._write(tmp_path)), IssueSource)

    def test_reads_listing_and_detail(self, tmp_path: Path) -> None:
        source = FixtureIssueSource(self._write(tmp_path))
        assert [r.key for r in source.list_tasks_in_epic("PROP-292")] == ["PROP-301"]
        assert source.get_task_detail("PROP-301").assignee == "Ada Lovelace"

    def test_missing_issue_raises_source_error(self, tmp_path: Path) -> None:
        source = FixtureIssueSource(self._write(tmp_path))
        with pytest.raises(IssueSourceError, match="snapshot.json"):
            source.get_task_detail("PROP-999")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            FixtureIssueSource(tmp_path / "absent.json")
