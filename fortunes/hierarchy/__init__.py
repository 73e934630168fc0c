# Hierarchy package for Fortunes
"""
Weighted Cabinet -> Shelf -> Jar hierarchy.

Normalizes user and implied weights, then samples one cookie with a
weighted draw at every level.
"""

from .cabinet import Cabinet, Shelf

__all__ = ["Cabinet", "Shelf"]
