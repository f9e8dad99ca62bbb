"""
Layered layout for C4 diagrams.

Every scope (the top level and each boundary) is laid out on its own with a
Sugiyama-style pass: cycle removal, longest-path ranking, barycenter
ordering, then coordinate assignment along the rank and cross axes. A
boundary is sized from its laid-out members and placed as a single node in
its parent scope, so boxes are always relative to the enclosing boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import networkx as nx

from ..conversion.interfaces import LayoutDirection
from .model import Diagram, Element, Shape

ELEMENT_WIDTH = 240
ELEMENT_HEIGHT = 120
PERSON_WIDTH = 200
PERSON_HEIGHT = 180
DESCRIPTION_CHARS_PER_LINE = 34
DESCRIPTION_LINE_HEIGHT = 15

BOUNDARY_PADDING = 30
BOUNDARY_LABEL_BAND = 40
EMPTY_BOUNDARY_WIDTH = 200
EMPTY_BOUNDARY_HEIGHT = 100

SWEEPS = 4


@dataclass
class Box:
    x: float
    y: float
    width: float
    height: float


@dataclass
class Placement:
    boxes: Dict[str, Box] = field(default_factory=dict)
    width: float = 0
    height: float = 0


@dataclass(frozen=True)
class _Edge:
    source: str
    target: str
    hint: Optional[str]


def element_size(element: Element) -> Tuple[int, int]:
    """Width and height for an element, taller when the description wraps."""
    if element.shape is Shape.PERSON:
        width, height = PERSON_WIDTH, PERSON_HEIGHT
    else:
        width, height = ELEMENT_WIDTH, ELEMENT_HEIGHT
    lines = sum(
        max(1, math.ceil(len(part) / DESCRIPTION_CHARS_PER_LINE))
        for part in element.description.split("\n")
    ) if element.description else 0
    if lines > 2:
        height += (lines - 2) * DESCRIPTION_LINE_HEIGHT
    return width, height


def _lift_edges(diagram: Diagram) -> Dict[Optional[str], List[_Edge]]:
    """Group relationships by the nearest scope holding both endpoints.

    Endpoints are replaced by the scope member that contains them, so a
    relationship between two boundaries' children connects the boundaries.
    """
    lifted: Dict[Optional[str], List[_Edge]] = {}
    for rel in diagram.relationships:
        src_scopes = diagram.ancestry(rel.source)
        dst_scopes = diagram.ancestry(rel.target)
        if rel.source in dst_scopes or rel.target in src_scopes:
            continue
        common = next(s for s in src_scopes if s in dst_scopes)
        src = _representative(diagram, rel.source, common)
        dst = _representative(diagram, rel.target, common)
        if src == dst:
            continue
        lifted.setdefault(common, []).append(_Edge(src, dst, rel.direction))
    return lifted


def _representative(diagram: Diagram, alias: str, scope: Optional[str]) -> str:
    node = alias
    while diagram.parent_of(node) != scope:
        node = diagram.parent_of(node)  # type: ignore[assignment]
    return node


def _ranks(nodes: List[str], edges: List[_Edge]) -> Dict[str, int]:
    order = {n: i for i, n in enumerate(nodes)}
    graph = nx.DiGraph()
    graph.add_nodes_from(nodes)
    for edge in edges:
        if edge.hint in ("left", "right"):
            continue
        if edge.hint == "up":
            graph.add_edge(edge.target, edge.source)
        else:
            graph.add_edge(edge.source, edge.target)

    while True:
        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            break
        graph.remove_edge(*cycle[-1][:2])

    topo = list(nx.lexicographical_topological_sort(graph, key=order.get))
    rank: Dict[str, int] = {}
    for node in topo:
        rank[node] = max((rank[p] + 1 for p in graph.predecessors(node)), default=0)
    # pull pure sources down next to their nearest successor
    for node in reversed(topo):
        succ = list(graph.successors(node))
        if succ and graph.in_degree(node) == 0:
            rank[node] = min(rank[s] for s in succ) - 1
    low = min(rank.values(), default=0)
    return {n: r - low for n, r in rank.items()}


def _order(nodes: List[str], edges: List[_Edge], rank: Dict[str, int]) -> List[List[str]]:
    depth = max(rank.values(), default=-1) + 1
    layers: List[List[str]] = [[] for _ in range(depth)]
    for node in nodes:
        layers[rank[node]].append(node)

    neighbours: Dict[str, List[str]] = {n: [] for n in nodes}
    for edge in edges:
        neighbours[edge.source].append(edge.target)
        neighbours[edge.target].append(edge.source)

    def sweep(indices: range, upper: bool) -> None:
        for r in indices:
            pos = {n: i for layer in layers for i, n in enumerate(layer)}

            def key(node: str) -> Tuple[float, int]:
                fixed = [pos[m] for m in neighbours[node] if (rank[m] < r if upper else rank[m] > r)]
                bary = sum(fixed) / len(fixed) if fixed else float(pos[node])
                return bary, pos[node]

            layers[r].sort(key=key)

    for _ in range(SWEEPS):
        sweep(range(1, depth), upper=True)
        sweep(range(depth - 2, -1, -1), upper=False)
    return layers


def _place(
    layers: List[List[str]],
    sizes: Dict[str, Tuple[float, float]],
    direction: LayoutDirection,
    nodesep: int,
    ranksep: int,
) -> Tuple[Dict[str, Box], float, float]:
    horizontal = direction.horizontal

    def main(node: str) -> float:
        w, h = sizes[node]
        return w if horizontal else h

    def cross(node: str) -> float:
        w, h = sizes[node]
        return h if horizontal else w

    band = [max((main(n) for n in layer), default=0) for layer in layers]
    extent = [sum(cross(n) for n in layer) + nodesep * max(len(layer) - 1, 0) for layer in layers]
    total_main = sum(band) + ranksep * max(len(layers) - 1, 0)
    total_cross = max(extent, default=0)

    boxes: Dict[str, Box] = {}
    offset = 0.0
    for r, layer in enumerate(layers):
        along = (total_cross - extent[r]) / 2
        for node in layer:
            m = offset + (band[r] - main(node)) / 2
            if direction.reversed:
                m = total_main - m - main(node)
            w, h = sizes[node]
            if horizontal:
                boxes[node] = Box(m, along, w, h)
            else:
                boxes[node] = Box(along, m, w, h)
            along += cross(node) + nodesep
        offset += band[r] + ranksep

    if horizontal:
        return boxes, total_main, total_cross
    return boxes, total_cross, total_main


class _ScopeLayout:
    def __init__(self, diagram: Diagram, direction: LayoutDirection, nodesep: int, ranksep: int) -> None:
        self.diagram = diagram
        self.direction = direction
        self.nodesep = nodesep
        self.ranksep = ranksep
        self.edges = _lift_edges(diagram)
        self.boxes: Dict[str, Box] = {}

    def run(self, scope: Optional[str]) -> Tuple[float, float]:
        nodes = self.diagram.members(scope)
        if not nodes:
            return 0, 0

        sizes: Dict[str, Tuple[float, float]] = {}
        for node in nodes:
            if node in self.diagram.elements:
                sizes[node] = element_size(self.diagram.elements[node])
            else:
                sizes[node] = self._boundary_size(node)

        edges = self.edges.get(scope, [])
        rank = _ranks(nodes, edges)
        layers = _order(nodes, edges, rank)
        boxes, width, height = _place(layers, sizes, self.direction, self.nodesep, self.ranksep)
        self.boxes.update(boxes)
        return width, height

    def _boundary_size(self, alias: str) -> Tuple[float, float]:
        width, height = self.run(alias)
        if not width and not height:
            return EMPTY_BOUNDARY_WIDTH, EMPTY_BOUNDARY_HEIGHT
        for member in self.diagram.members(alias):
            box = self.boxes[member]
            box.x += BOUNDARY_PADDING
            box.y += BOUNDARY_PADDING
        return (
            max(width + 2 * BOUNDARY_PADDING, EMPTY_BOUNDARY_WIDTH),
            height + 2 * BOUNDARY_PADDING + BOUNDARY_LABEL_BAND,
        )


def layout(
    diagram: Diagram,
    *,
    direction: LayoutDirection | str = LayoutDirection.TB,
    nodesep: int = 60,
    ranksep: int = 80,
    marginx: int = 20,
    marginy: int = 20,
) -> Placement:
    """Compute a box for every element and boundary of `diagram`.

    Boxes of boundary members are relative to the boundary's top-left corner;
    top-level boxes include the margins. The returned width and height cover
    the whole drawing including margins.
    """
    runner = _ScopeLayout(diagram, LayoutDirection(direction), nodesep, ranksep)
    width, height = runner.run(None)
    for member in diagram.members(None):
        box = runner.boxes[member]
        box.x += marginx
        box.y += marginy
    for box in runner.boxes.values():
        box.x, box.y = round(box.x), round(box.y)
    return Placement(
        boxes=runner.boxes,
        width=round(width + 2 * marginx),
        height=round(height + 2 * marginy),
    )
