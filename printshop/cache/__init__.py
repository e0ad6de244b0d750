"""
Cache package initialization.

Redis-backed caching of reference data such as exchange rates.
"""
