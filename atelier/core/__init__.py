"""Atelier core: database access, query cache, auth, notifications, shared utilities."""
