"""FastAPI routes, schemas and dependencies."""
