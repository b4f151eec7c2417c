"""Background jobs and their scheduler."""
