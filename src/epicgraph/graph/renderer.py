"""Mermaid rendering of an epic graph, plus the HTML page that hosts it."""

from pathlib import Path

from epicgraph.graph.models import Blocker, Task, root_key
from epicgraph.graph.policy import Partition, is_blocked_visual

_NODE_STYLE = "stroke:#333,stroke-width:2px"

CLASS_DEFS: dict[str, str] = {
    "AppInProgress": f"fill:#ffeaa7,{_NODE_STYLE}",
    "AppBlocked": f"fill:#e17055,{_NODE_STYLE}",
    "EPOSInProgress": f"fill:#81ecec,{_NODE_STYLE}",
    "EPOSBlocked": f"fill:#22a6b3,{_NODE_STYLE}",
}

# (partition, blocked) -> class name
_STYLE_CLASS: dict[tuple[Partition, bool], str] = {
    (Partition.APP, False): "AppInProgress",
    (Partition.APP, True): "AppBlocked",
    (Partition.EPOS, False): "EPOSInProgress",
    (Partition.EPOS, True): "EPOSBlocked",
}

_ROOT_LABEL: dict[Partition, str] = {
    Partition.APP: "App",
    Partition.EPOS: "EPOS",
}

SOLID_ARROW = "-->"
DASHED_ARROW = "-.->"

UNASSIGNED = "Unassigned"

MERMAID_CDN = "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.esm.min.mjs"

_HTML_TEMPLATE = """<!DOCTYPE html>
<body>
<pre class="mermaid">
{mermaid}
</pre>
<script type="module">
import mermaid from '{cdn}';
mermaid.initialize({{ startOnLoad: true }});
</script>
</body>
"""


def style_class(partition: Partition, status: str) -> str:
    return _STYLE_CLASS[(partition, is_blocked_visual(status))]


def _task_node(task: Task) -> str:
    summary = task.summary.replace('"', "'")
    assignee = task.assignee or UNASSIGNED
    label = (
        f"{task.key}<br/>{task.partition}<br/>{summary}"
        f"<br/><b>{task.status} ({assignee})</b>"
    )
    return f'  {task.key}["{label}"]'


def render_mermaid(
    tasks: dict[str, Task],
    blocked_by: dict[str, dict[str, Blocker]],
    epic_key: str,
) -> str:
    """Render the task set and blocking relationships as a Mermaid flowchart.

    Output order is fixed: header, class definitions, the two roots, one
    node and class line per task in insertion order, then one edge per
    blockee/blocker pair. Solid edges join tasks of the same partition,
    dashed edges cross partitions.
    """
    lines = ["graph TD"]
    for class_name, style in CLASS_DEFS.items():
        lines.append(f"  classDef {class_name} {style};")

    for partition in Partition:
        node_id = root_key(epic_key, partition)
        lines.append(
            f'  {node_id}["{epic_key} {_ROOT_LABEL[partition]} Feature Branch"]'
        )
        lines.append(f"  class {node_id} {_STYLE_CLASS[(partition, True)]}")

    for task in tasks.values():
        lines.append(_task_node(task))
        lines.append(f"  class {task.key} {style_class(task.partition, task.status)}")

    for blockee, blockers in blocked_by.items():
        for blocker in blockers.values():
            arrow = SOLID_ARROW if blocker.same_app else DASHED_ARROW
            lines.append(f"  {blocker.key} {arrow} {blockee}")

    return "\n".join(lines)


def render_html(mermaid: str) -> str:
    """Wrap Mermaid text in a page that renders it client-side."""
    return _HTML_TEMPLATE.format(mermaid=mermaid, cdn=MERMAID_CDN)


def write_html(mermaid: str, epic_key: str, output_dir: Path) -> Path:
    """Write ``<output_dir>/<epic_key>.html`` and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{epic_key}.html"
    path.write_text(render_html(mermaid))
    return path
