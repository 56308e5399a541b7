"""Graph construction and rendering for epic blocking diagrams."""
