"""GraphBuilder: discovers an epic's tasks and their blocking relationships.

A build runs in three passes over state owned by that build alone:

1. ingest: a worklist seeded with the epic's open tasks. Each popped
   issue gets a detail fetch, becomes a Task, and queues every issue it
   is linked to by a Blocks link. The visited set makes this terminate on
   cyclic link graphs and fetch each issue at most once.
2. resolve: every recorded Blocks link becomes a blockee -> blocker entry.
3. attach: epic children without an in-epic blocker hang off the
   feature-branch root of their own partition.
"""

from collections import deque
from dataclasses import dataclass, field

from epicgraph.backends.jira import IssueSource
from epicgraph.errors import IssueSourceError
from epicgraph.graph.models import (
    EpicGraph,
    IssueDetail,
    IssueLink,
    IssueRef,
    LinkDirection,
    Task,
)
from epicgraph.graph.policy import classify, is_closed
from epicgraph.graph.reporter import BuildReporter, SilentReporter


@dataclass
class _Traversal:
    """Worklist state for the ingest pass of a single build."""

    graph: EpicGraph
    queue: deque[IssueRef] = field(default_factory=deque)
    visited: set[str] = field(default_factory=set)

    def enqueue(self, ref: IssueRef) -> bool:
        """Queue an issue unless it was seen before or is the epic itself."""
        if ref.key in self.visited or ref.key == self.graph.epic_key:
            return False
        self.visited.add(ref.key)
        self.queue.append(ref)
        return True


class GraphBuilder:
    """Builds an EpicGraph from an IssueSource.

    The builder holds no traversal state between calls, so one instance
    can build any number of epics.
    """

    def __init__(
        self, source: IssueSource, reporter: BuildReporter | None = None
    ) -> None:
        self._source = source
        self._reporter = reporter or SilentReporter()

    def build(self, epic_key: str) -> EpicGraph:
        graph = EpicGraph(epic_key=epic_key)
        traversal = _Traversal(graph=graph)

        for ref in self._list_epic(graph):
            if is_closed(ref.status):
                self._reporter.on_task_skipped(ref.key, ref.status)
                traversal.visited.add(ref.key)
                continue
            traversal.enqueue(ref)

        while traversal.queue:
            self._ingest(traversal.queue.popleft(), traversal)

        resolve_blocking(graph)
        attach_orphans(graph, self._reporter)
        return graph

    def _list_epic(self, graph: EpicGraph) -> list[IssueRef]:
        try:
            refs = self._source.list_tasks_in_epic(graph.epic_key)
        except IssueSourceError as exc:
            self._record_failure(graph, exc)
            refs = []
        self._reporter.on_epic_listed(graph.epic_key, len(refs))
        return refs

    def _fetch_detail(self, graph: EpicGraph, key: str) -> IssueDetail | None:
        try:
            return self._source.get_task_detail(key)
        except IssueSourceError as exc:
            self._record_failure(graph, exc)
            return None

    def _record_failure(self, graph: EpicGraph, exc: IssueSourceError) -> None:
        graph.failures.append(str(exc))
        self._reporter.on_fetch_failed(exc.operation, exc.key, exc.reason)

    def _ingest(self, ref: IssueRef, traversal: _Traversal) -> None:
        graph = traversal.graph
        if ref.key in graph.tasks:
            return

        detail = self._fetch_detail(graph, ref.key)
        links: list[IssueLink]
        if detail is None:
            # Degraded: keep the node from the seed data, without links.
            task = Task.from_ref(ref)
            links = []
        else:
            if is_closed(detail.status):
                self._reporter.on_task_skipped(detail.key, detail.status)
                return
            task = Task(
                key=detail.key,
                summary=detail.summary,
                status=detail.status,
                parent_key=detail.parent_key or ref.parent_key,
                assignee=detail.assignee or ref.assignee,
            )
            links = list(detail.links)

        graph.tasks[task.key] = task
        graph.links[task.key] = links
        self._reporter.on_task_ingested(task.key, task.summary, task.status)

        for link in links:
            if not link.is_blocks:
                continue
            if is_closed(link.issue.status):
                continue
            traversal.enqueue(link.issue)


def resolve_blocking(graph: EpicGraph) -> None:
    """Turn every recorded Blocks link into a blockee -> blocker entry.

    Links to closed issues, or to issues that did not make it into the
    task set, are dropped. The epic itself is replaced by the root of the
    linked side's partition.
    """
    for task_key, links in graph.links.items():
        task = graph.tasks[task_key]
        for link in links:
            if not link.is_blocks or is_closed(link.issue.status):
                continue

            linked_partition = classify(link.issue.summary)
            if link.issue.key == graph.epic_key:
                linked_node = graph.root_key(linked_partition)
                same_app = True
            elif link.issue.key in graph.tasks:
                linked_node = link.issue.key
                same_app = task.partition == linked_partition
            else:
                continue

            if link.direction == LinkDirection.outward:
                graph.add_blocker(linked_node, task_key, same_app)
            else:
                graph.add_blocker(task_key, linked_node, same_app)


def _is_anchor(graph: EpicGraph, key: str) -> bool:
    """A blocker anchors its blockee if it is a root or an epic child."""
    if key in graph.root_keys:
        return True
    blocker = graph.tasks.get(key)
    return blocker is not None and blocker.parent_key == graph.epic_key


def attach_orphans(
    graph: EpicGraph, reporter: BuildReporter | None = None
) -> list[str]:
    """Give every epic child without an anchoring blocker a root edge.

    Only direct blockers are inspected. Returns the attached task keys.
    """
    reporter = reporter or SilentReporter()
    attached: list[str] = []
    for task in graph.children_of_epic():
        if any(_is_anchor(graph, b.key) for b in graph.blockers_of(task.key)):
            continue
        root = graph.root_key(task.partition)
        graph.add_blocker(task.key, root, same_app=True)
        reporter.on_root_attached(task.key, root)
        attached.append(task.key)
    return attached
