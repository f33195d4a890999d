"""HTTP surface: FastAPI gateway, routes, middleware and contracts."""
