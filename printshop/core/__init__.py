"""
Core package for shared utilities.

Configuration, structured logging, the workflow error taxonomy and identity
token handling shared by every service of the print-shop backend.
"""
