"""Interio Quoter: quotations, sales orders, invoices and payments for interior design work."""

__version__ = "3.0.0"
