from dataclasses import dataclass, field
from enum import Enum


class ElementKind(str, Enum):
    PERSON = "Person"
    SYSTEM = "System"
    CONTAINER = "Container"
    COMPONENT = "Component"


class Shape(str, Enum):
    PERSON = "person"
    BOX = "box"
    DATABASE = "database"
    QUEUE = "queue"


@dataclass
class Element:
    alias: str
    kind: ElementKind
    label: str
    description: str = ""
    technology: str = ""
    shape: Shape = Shape.BOX
    external: bool = False
    parent: str | None = None
    line: int = 0


@dataclass
class Boundary:
    alias: str
    label: str
    boundary_type: str = "Boundary"
    parent: str | None = None
    line: int = 0


@dataclass
class Relationship:
    source: str
    target: str
    label: str = ""
    technology: str = ""
    description: str = ""
    bidirectional: bool = False
    # "down", "up", "left", "right", or None when no hint was given
    direction: str | None = None
    line: int = 0


@dataclass
class Diagram:
    title: str = ""
    elements: dict[str, Element] = field(default_factory=dict)
    boundaries: dict[str, Boundary] = field(default_factory=dict)
    relationships: list[Relationship] = field(default_factory=list)

    def members(self, scope: str | None) -> list[str]:
        """Aliases directly inside `scope` (None for the top level), in source order."""
        found = [(b.line, b.alias) for b in self.boundaries.values() if b.parent == scope]
        found += [(e.line, e.alias) for e in self.elements.values() if e.parent == scope]
        return [alias for _, alias in sorted(found)]

    def parent_of(self, alias: str) -> str | None:
        if alias in self.elements:
            return self.elements[alias].parent
        return self.boundaries[alias].parent

    def ancestry(self, alias: str) -> list[str | None]:
        """Scopes enclosing `alias`, innermost first, ending with None."""
        chain: list[str | None] = []
        scope = self.parent_of(alias)
        while scope is not None:
            chain.append(scope)
            scope = self.boundaries[scope].parent
        chain.append(None)
        return chain
