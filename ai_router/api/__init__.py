"""
HTTP surface for the AI request router.
"""

from .app import create_app

__all__ = ["create_app"]
