"""Persistence: models, sessions and repositories."""
