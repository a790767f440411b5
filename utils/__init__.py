# utils/__init__.py
"""General utility functions for storyloom."""

from .logging import setup_logging

__all__ = ["setup_logging"]
