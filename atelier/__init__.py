"""Atelier - agency project management and CRM back office."""
