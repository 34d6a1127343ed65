"""Reports module — read-only HR aggregations."""
