"""Quotations and their conversion into orders."""
