"""
API package for the lead discovery pipeline.
"""

from .api import app, get_service

__all__ = ["app", "get_service"]
