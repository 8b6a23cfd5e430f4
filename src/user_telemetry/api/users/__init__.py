"""
Users API: app factory and routes.
"""

from .main import create_app

__all__ = ["create_app"]
