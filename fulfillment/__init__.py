"""Storefront fulfillment engine - orders, stock ledger, payments and refunds."""

__version__ = "1.0.0"
