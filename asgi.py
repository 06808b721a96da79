"""
asgi.py -- ASGI entry point for UserHub.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so deployment config points at one stable
module path while api/ remains importable without side effects beyond app
construction.
"""

from api.main import app

__all__ = ["app"]
