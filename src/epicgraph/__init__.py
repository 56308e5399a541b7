"""epicgraph: render Jira epic blocking graphs as Mermaid diagrams."""

__version__ = "0.1.0"
