"""HTTP surface built on FastAPI and served by uvicorn."""

from .app import create_app

__all__ = ["create_app"]
