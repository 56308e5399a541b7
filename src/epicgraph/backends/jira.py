"""IssueSource protocol and implementations (Real, Mock, Fixture).

Every implementation hands raw Jira REST payloads to the same parse
functions, so payload validation behaves identically online, offline and
in tests.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import requests

from epicgraph.errors import IssueSourceError, MalformedIssueError
from epicgraph.graph.models import IssueDetail, IssueLink, IssueRef, LinkDirection
from epicgraph.state.config import JiraConfig

SEARCH_FIELDS = "key,summary,status,issuelinks,parent,assignee"
SEARCH_PAGE_SIZE = 100


def epic_jql(epic_key: str) -> str:
    return f'"Epic Link" = {epic_key}'


def _require(payload: dict[str, Any], path: str, key: str) -> Any:
    """Walk a dotted path through nested dicts or raise MalformedIssueError."""
    value: Any = payload
    for part in path.split("."):
        if not isinstance(value, dict) or value.get(part) is None:
            raise MalformedIssueError(key, path)
        value = value[part]
    return value


def _optional(payload: dict[str, Any], path: str) -> Any:
    value: Any = payload
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def parse_issue_ref(payload: dict[str, Any]) -> IssueRef:
    """Convert a search hit or an embedded link issue to an IssueRef."""
    key = payload.get("key")
    if not key:
        raise MalformedIssueError("<unknown>", "key")
    return IssueRef(
        key=key,
        summary=_require(payload, "fields.summary", key),
        status=_require(payload, "fields.status.name", key),
        assignee=_optional(payload, "fields.assignee.displayName"),
        parent_key=_optional(payload, "fields.parent.key"),
    )


def parse_issue_link(payload: dict[str, Any], owner_key: str) -> IssueLink:
    """Convert one entry of ``fields.issuelinks`` on ``owner_key``."""
    type_name = _require(payload, "type.name", owner_key)
    if payload.get("outwardIssue"):
        direction = LinkDirection.outward
        linked = payload["outwardIssue"]
    elif payload.get("inwardIssue"):
        direction = LinkDirection.inward
        linked = payload["inwardIssue"]
    else:
        raise MalformedIssueError(owner_key, "issuelinks.outwardIssue|inwardIssue")
    return IssueLink(
        type_name=type_name, direction=direction, issue=parse_issue_ref(linked)
    )


def parse_issue_detail(payload: dict[str, Any]) -> IssueDetail:
    """Convert a ``GET issue/{key}`` payload to an IssueDetail."""
    ref = parse_issue_ref(payload)
    links = [
        parse_issue_link(link, ref.key)
        for link in _optional(payload, "fields.issuelinks") or []
    ]
    return IssueDetail(
        key=ref.key,
        summary=ref.summary,
        status=ref.status,
        parent_key=ref.parent_key,
        assignee=ref.assignee,
        links=links,
    )


@runtime_checkable
class IssueSource(Protocol):
    """Protocol for reading epics and issues from the tracker.

    Transport failures raise IssueSourceError; missing payload fields
    raise MalformedIssueError.
    """

    def list_tasks_in_epic(self, epic_key: str) -> list[IssueRef]:
        """Return the issues whose Epic Link is ``epic_key``."""
        ...

    def get_task_detail(self, task_key: str) -> IssueDetail:
        """Return the full payload for one issue, including its links."""
        ...


class RealIssueSource:
    """Reads from the Jira Cloud REST API v3 with basic auth."""

    def __init__(
        self, config: JiraConfig, session: requests.Session | None = None
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.auth = (config.username, config.api_token)
        self._session.headers.update({"Accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/rest/api/3/{path}"

    def _get(
        self,
        operation: str,
        key: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._session.get(
                self._url(path), params=params, timeout=self._config.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise IssueSourceError(operation, key, str(exc)) from exc
        except ValueError as exc:
            raise IssueSourceError(operation, key, f"invalid JSON: {exc}") from exc

    def list_tasks_in_epic(self, epic_key: str) -> list[IssueRef]:
        """Page through ``search`` until ``total`` issues have been read."""
        refs: list[IssueRef] = []
        start_at = 0
        while True:
            data = self._get(
                "list_tasks_in_epic",
                epic_key,
                "search",
                params={
                    "jql": epic_jql(epic_key),
                    "fields": SEARCH_FIELDS,
                    "startAt": start_at,
                    "maxResults": SEARCH_PAGE_SIZE,
                },
            )
            issues = data.get("issues") or []
            refs.extend(parse_issue_ref(issue) for issue in issues)
            start_at += len(issues)
            total = data.get("total", start_at)
            if not issues or start_at >= total:
                return refs

    def get_task_detail(self, task_key: str) -> IssueDetail:
        data = self._get("get_task_detail", task_key, f"issue/{task_key}")
        return parse_issue_detail(data)


@dataclass
class MockIssueSource:
    """Serves canned raw payloads for testing.

    ``epics`` maps an epic key to its search hits; ``issues`` maps an issue
    key to its detail payload. Keys in ``fail_on`` raise IssueSourceError.
    """

    epics: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    issues: dict[str, dict[str, Any]] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)

    listed: list[str] = field(default_factory=list)
    fetched: list[str] = field(default_factory=list)

    def list_tasks_in_epic(self, epic_key: str) -> list[IssueRef]:
        self.listed.append(epic_key)
        if epic_key in self.fail_on:
            raise IssueSourceError("list_tasks_in_epic", epic_key, "mock failure")
        return [parse_issue_ref(issue) for issue in self.epics.get(epic_key, [])]

    def get_task_detail(self, task_key: str) -> IssueDetail:
        self.fetched.append(task_key)
        if task_key in self.fail_on:
            raise IssueSourceError("get_task_detail", task_key, "mock failure")
        payload = self.issues.get(task_key)
        if payload is None:
            raise IssueSourceError("get_task_detail", task_key, "404 Not Found")
        return parse_issue_detail(payload)


class FixtureIssueSource:
    """Serves payloads from a JSON snapshot for offline rendering.

    The file holds ``{"epics": {EPIC: [hits]}, "issues": {KEY: detail}}``,
    using the same shapes the REST API returns. OSError and
    json.JSONDecodeError from reading the file propagate to the caller.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        data = json.loads(path.read_text())
        self._epics: dict[str, list[dict[str, Any]]] = data.get("epics", {})
        self._issues: dict[str, dict[str, Any]] = data.get("issues", {})

    def list_tasks_in_epic(self, epic_key: str) -> list[IssueRef]:
        return [parse_issue_ref(issue) for issue in self._epics.get(epic_key, [])]

    def get_task_detail(self, task_key: str) -> IssueDetail:
        payload = self._issues.get(task_key)
        if payload is None:
            raise IssueSourceError(
                "get_task_detail", task_key, f"not present in {self._path.name}"
            )
        return parse_issue_detail(payload)
