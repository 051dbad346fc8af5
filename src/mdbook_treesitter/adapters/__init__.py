"""Integrations with documentation hosts."""
