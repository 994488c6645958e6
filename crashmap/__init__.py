"""Spatial crash statistics service for a single-region crash extract."""

__version__ = "1.0.0"
