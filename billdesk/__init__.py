"""Billing workflow service: clients, quotations, invoices and outgoing payments."""

__version__ = "1.0.0"
