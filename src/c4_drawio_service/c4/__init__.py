"""
C4-PlantUML to draw.io conversion engine.

`parse` reads the C4 macro subset of PlantUML into a model, `layout` places
it on a layered grid and `render` writes the draw.io XML.
"""

from .drawio import render
from .layout import Box, Placement, layout
from .model import Boundary, Diagram, Element, ElementKind, Relationship, Shape
from .parser import C4ParseError, parse
