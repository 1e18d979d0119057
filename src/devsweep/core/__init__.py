"""Scan orchestration, caching and quarantine."""
