"""Issue tracker sources."""
