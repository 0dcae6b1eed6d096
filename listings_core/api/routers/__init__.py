"""API routers."""

from . import dashboard, listings, views

__all__ = ['dashboard', 'listings', 'views']
