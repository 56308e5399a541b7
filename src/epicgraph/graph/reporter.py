"""Reporter: progress reporting for graph construction.

Follows the Real/Mock/Silent pattern used by the issue sources.
The GraphBuilder calls reporter methods as it lists, ingests and skips
issues, so the traversal itself never writes to the console.
"""

import sys
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class BuildEvent:
    """Record of a reporter event for testing."""

    event_type: str
    key: str
    data: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BuildReporter(Protocol):
    """Protocol for graph construction progress reporting."""

    def on_epic_listed(self, epic_key: str, task_count: int) -> None:
        """Called once the epic's task listing has been fetched."""
        ...

    def on_task_skipped(self, key: str, status: str) -> None:
        """Called when a closed task is left out of the graph."""
        ...

    def on_task_ingested(self, key: str, summary: str, status: str) -> None:
        """Called when a task is added to the graph."""
        ...

    def on_fetch_failed(self, operation: str, key: str, error: str) -> None:
        """Called when a call to the issue source failed and was degraded."""
        ...

    def on_root_attached(self, key: str, root_key: str) -> None:
        """Called when an unblocked epic child is attached to a root."""
        ...

    def summarize(
        self,
        epic_key: str,
        task_count: int,
        edge_count: int,
        failures: int,
    ) -> str:
        """Generate a final summary string."""
        ...


class RealReporter:
    """Reports progress to stderr so stdout stays free for diagram output."""

    def _emit(self, line: str) -> None:
        print(line, file=sys.stderr)

    def on_epic_listed(self, epic_key: str, task_count: int) -> None:
        self._emit(f"[listed] {epic_key}: {task_count} tasks")

    def on_task_skipped(self, key: str, status: str) -> None:
        self._emit(f"[skipped] {key} ({status})")

    def on_task_ingested(self, key: str, summary: str, status: str) -> None:
        self._emit(f"[ingested] {key} - {summary} ({status})")

    def on_fetch_failed(self, operation: str, key: str, error: str) -> None:
        self._emit(f"[FAILED] {operation} {key}: {error}")

    def on_root_attached(self, key: str, root_key: str) -> None:
        self._emit(f"[root] {root_key} --> {key}")

    def summarize(
        self,
        epic_key: str,
        task_count: int,
        edge_count: int,
        failures: int,
    ) -> str:
        lines = [f"--- {epic_key} Graph Summary ---"]
        lines.append(f"Tasks: {task_count}")
        lines.append(f"Edges: {edge_count}")
        if failures:
            lines.append(f"Failed fetches: {failures} (graph may be incomplete)")
        return "\n".join(lines)


@dataclass
class MockReporter:
    """Records reporter events for testing."""

    events: list[BuildEvent] = field(default_factory=list)
    summaries: list[str] = field(default_factory=list)

    def events_of(self, event_type: str) -> list[BuildEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def on_epic_listed(self, epic_key: str, task_count: int) -> None:
        self.events.append(
            BuildEvent(
                event_type="listed", key=epic_key, data={"task_count": task_count}
            )
        )

    def on_task_skipped(self, key: str, status: str) -> None:
        self.events.append(
            BuildEvent(event_type="skipped", key=key, data={"status": status})
        )

    def on_task_ingested(self, key: str, summary: str, status: str) -> None:
        self.events.append(
            BuildEvent(
                event_type="ingested",
                key=key,
                data={"summary": summary, "status": status},
            )
        )

    def on_fetch_failed(self, operation: str, key: str, error: str) -> None:
        self.events.append(
            BuildEvent(
                event_type="failed",
                key=key,
                data={"operation": operation, "error": error},
            )
        )

    def on_root_attached(self, key: str, root_key: str) -> None:
        self.events.append(
            BuildEvent(event_type="root", key=key, data={"root_key": root_key})
        )

    def summarize(
        self,
        epic_key: str,
        task_count: int,
        edge_count: int,
        failures: int,
    ) -> str:
        summary = (
            f"epic={epic_key} tasks={task_count} "
            f"edges={edge_count} failures={failures}"
        )
        self.summaries.append(summary)
        return summary


class SilentReporter:
    """Discards every event. Default when no reporter is injected."""

    def on_epic_listed(self, epic_key: str, task_count: int) -> None:
        pass

    def on_task_skipped(self, key: str, status: str) -> None:
        pass

    def on_task_ingested(self, key: str, summary: str, status: str) -> None:
        pass

    def on_fetch_failed(self, operation: str, key: str, error: str) -> None:
        pass

    def on_root_attached(self, key: str, root_key: str) -> None:
        pass

    def summarize(
        self,
        epic_key: str,
        task_count: int,
        edge_count: int,
        failures: int,
    ) -> str:
        return ""
