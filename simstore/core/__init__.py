"""Canonical record store, persistence, configuration and query orchestration."""
