"""HTTP API: FastAPI application, dependencies and exception handlers."""
