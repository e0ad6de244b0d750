"""
Database package.

- base: declarative base and model mixins
- models: ORM models for orders, quotations and reference data
- connection: async engine and session management
"""
