"""Service layer: form parsing, persistence and derived stats for the views."""
