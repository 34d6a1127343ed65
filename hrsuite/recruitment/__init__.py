"""Recruitment module — flow templates, jobs, candidates and interviews."""
