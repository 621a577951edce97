"""
CLI Interface - Command-line tools for Toolfinder.

Provides commands for:
- Search queries and suggestions
- Database setup
- Running the API server
"""

from .main import app, main

__all__ = ["app", "main"]
