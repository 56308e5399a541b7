"""Source factory for constructing an IssueSource based on mode."""

from enum import Enum, auto
from pathlib import Path

from epicgraph.backends.jira import (
    FixtureIssueSource,
    IssueSource,
    MockIssueSource,
    RealIssueSource,
)
from epicgraph.state.config import JiraConfig


class SourceMode(Enum):
    """Where issue data comes from."""

    REAL = auto()
    MOCK = auto()
    FIXTURE = auto()


def create_source(
    mode: SourceMode,
    config: JiraConfig | None = None,
    fixture_path: Path | None = None,
) -> IssueSource:
    """Create the issue source for the given mode.

    REAL requires a complete config (ConfigError otherwise); FIXTURE
    requires a fixture path.
    """
    if mode == SourceMode.REAL:
        if config is None:
            raise ValueError("REAL mode requires a JiraConfig")
        return RealIssueSource(config.validate())
    elif mode == SourceMode.MOCK:
        return MockIssueSource()
    elif mode == SourceMode.FIXTURE:
        if fixture_path is None:
            raise ValueError("FIXTURE mode requires a fixture path")
        return FixtureIssueSource(fixture_path)
    else:
        raise ValueError(f"Unknown source mode: {mode}")
