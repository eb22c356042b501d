"""Canonical item model, error taxonomy, detection rules and chunking."""
