"""Multi-currency pricing: engine, rate resolution and reference data."""
