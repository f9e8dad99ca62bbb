"""
C4-PlantUML to draw.io conversion service package.

This module provides a FastAPI application that turns C4-PlantUML text into
draw.io XML. The interactive page is served at `/` and the API at `/convert`.
"""

__all__ = ["__version__"]

__version__ = "1.0.0"
