"""Fulfillment REST API."""
