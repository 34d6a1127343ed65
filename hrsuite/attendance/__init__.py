"""Attendance module — daily attendance records."""
