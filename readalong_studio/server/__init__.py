"""HTTP API for read-along sessions (FastAPI)."""
