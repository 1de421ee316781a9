"""
HTTP surface for the booking core.
"""

from .app import create_app

__all__ = ["create_app"]
