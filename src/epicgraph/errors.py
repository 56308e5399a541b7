"""Exception hierarchy shared by sources, the builder and the CLI."""


class EpicGraphError(Exception):
    """Base class for all epicgraph errors."""


class IssueSourceError(EpicGraphError):
    """A call to the issue tracker failed (transport, HTTP status or JSON).

    The graph builder catches these per call and degrades to an empty
    result.
    """

    def __init__(self, operation: str, key: str, reason: str) -> None:
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"{operation} {key} failed: {reason}")


class MalformedIssueError(EpicGraphError):
    """An issue payload is missing a field the graph needs."""

    def __init__(self, key: str, field: str) -> None:
        self.key = key
        self.field = field
        super().__init__(f"Issue {key} payload is missing '{field}'")


class ConfigError(EpicGraphError):
    """Jira connection settings are incomplete."""
