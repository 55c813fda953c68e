"""
Configuration for BNS section search.
"""

from .config_loader import SearchConfig

__all__ = ["SearchConfig"]
