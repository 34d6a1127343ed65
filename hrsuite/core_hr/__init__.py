"""Core HR module — employees, departments, locations."""
