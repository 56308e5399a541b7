"""Issue, task and graph models used by the builder and the renderer."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum

from epicgraph.graph.policy import Partition, classify

BLOCKS_LINK_TYPE = "Blocks"

# Suffix appended to the epic key to form each partition's root node id.
_ROOT_SUFFIX: dict[Partition, str] = {
    Partition.APP: "App",
    Partition.EPOS: "EPOS",
}


class LinkDirection(StrEnum):
    outward = "outward"
    inward = "inward"


@dataclass(frozen=True)
class IssueRef:
    """The slice of an issue embedded in search results and link payloads."""

    key: str
    summary: str
    status: str
    assignee: str | None = None
    parent_key: str | None = None


@dataclass(frozen=True)
class IssueLink:
    """A link on an issue's detail payload, seen from that issue.

    ``outward`` on a Blocks link means the owning issue blocks ``issue``;
    ``inward`` means the owning issue is blocked by it.
    """

    type_name: str
    direction: LinkDirection
    issue: IssueRef

    @property
    def is_blocks(self) -> bool:
        return self.type_name == BLOCKS_LINK_TYPE


@dataclass(frozen=True)
class IssueDetail:
    """Full issue payload: the listing fields plus parent, assignee and links."""

    key: str
    summary: str
    status: str
    parent_key: str | None = None
    assignee: str | None = None
    links: list[IssueLink] = field(default_factory=list)


@dataclass(frozen=True)
class Task:
    """A node in the epic graph.

    ``partition`` is derived from ``summary`` once and never recomputed.
    """

    key: str
    summary: str
    status: str
    parent_key: str | None = None
    assignee: str | None = None
    partition: Partition = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "partition", classify(self.summary))

    @classmethod
    def from_detail(cls, detail: IssueDetail) -> "Task":
        return cls(
            key=detail.key,
            summary=detail.summary,
            status=detail.status,
            parent_key=detail.parent_key,
            assignee=detail.assignee,
        )

    @classmethod
    def from_ref(cls, ref: IssueRef) -> "Task":
        return cls(
            key=ref.key,
            summary=ref.summary,
            status=ref.status,
            parent_key=ref.parent_key,
            assignee=ref.assignee,
        )


@dataclass(frozen=True)
class Blocker:
    """One entry in a blockee's blocker set."""

    key: str
    same_app: bool


def root_key(epic_key: str, partition: Partition) -> str:
    """Return the node id of the feature-branch root for a partition."""
    return f"{epic_key}{_ROOT_SUFFIX[partition]}"


@dataclass
class EpicGraph:
    """Result of one build: the task set and the blocking relationships.

    ``blocked_by`` maps a blockee key to its blockers, both levels in
    insertion order. Blockee and blocker keys may be partition root ids.
    ``failures`` holds one message per source call that was degraded.
    """

    epic_key: str
    tasks: dict[str, Task] = field(default_factory=dict)
    links: dict[str, list[IssueLink]] = field(default_factory=dict)
    blocked_by: dict[str, dict[str, Blocker]] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)

    def root_key(self, partition: Partition) -> str:
        return root_key(self.epic_key, partition)

    @property
    def root_keys(self) -> list[str]:
        return [self.root_key(p) for p in Partition]

    def add_blocker(self, blockee: str, blocker: str, same_app: bool) -> bool:
        """Record that ``blocker`` blocks ``blockee``.

        The first record for a blockee/blocker pair wins. Returns True if
        the pair was new.
        """
        blockers = self.blocked_by.setdefault(blockee, {})
        if blocker in blockers:
            return False
        blockers[blocker] = Blocker(key=blocker, same_app=same_app)
        return True

    def blockers_of(self, key: str) -> list[Blocker]:
        return list(self.blocked_by.get(key, {}).values())

    def edges(self) -> Iterator[tuple[str, str, bool]]:
        """Yield ``(blocker, blockee, same_app)`` in render order."""
        for blockee, blockers in self.blocked_by.items():
            for blocker in blockers.values():
                yield blocker.key, blockee, blocker.same_app

    def children_of_epic(self) -> list[Task]:
        return [t for t in self.tasks.values() if t.parent_key == self.epic_key]
