"""Shared helpers for time handling, validation and error pages."""
