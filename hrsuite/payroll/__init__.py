"""Payroll module — pay components, templates, tax rules and payroll runs."""
