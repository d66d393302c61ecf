"""Admin project routes."""
