"""Adapters for external collaborators (catalog, payment gateways, notifications)."""
