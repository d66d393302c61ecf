"""Shared services: object storage."""
