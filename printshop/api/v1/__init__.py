"""
API v1 package initialization.

Routers are imported by the application module, not here, so that the
schemas and services they pull in load only when the app is built.
"""
