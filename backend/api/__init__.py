"""
Creator API package.

Provides the FastAPI application for credits, payments and generation.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
