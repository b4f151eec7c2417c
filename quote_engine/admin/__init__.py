"""Admin review surface."""
