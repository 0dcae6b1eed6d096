"""HTTP API for the listing core."""

from .main import create_app

__all__ = ['create_app']
