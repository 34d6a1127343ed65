"""Time-off module — leave requests and their review workflow."""
