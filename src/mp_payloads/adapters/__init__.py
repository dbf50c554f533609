"""Adapters – integrations with external services (optional extras)."""
