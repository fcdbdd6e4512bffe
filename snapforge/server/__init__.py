"""Snapforge REST API (FastAPI)."""
