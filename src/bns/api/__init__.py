"""
HTTP API for BNS section search.
"""

from .app import build_app, create_app

__all__ = ["build_app", "create_app"]
