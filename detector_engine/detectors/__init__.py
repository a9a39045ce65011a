"""Concrete detector implementations."""
