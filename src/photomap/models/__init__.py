"""
Models module for photomap application.

This module contains data models:
- Photo: Data class for one metadata document entry
"""

from .photo import Photo

__all__ = ["Photo"]
