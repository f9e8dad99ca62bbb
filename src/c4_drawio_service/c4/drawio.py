"""Render a laid-out C4 diagram as an uncompressed draw.io document."""

import re
import xml.etree.ElementTree as ET

from .. import __version__
from .layout import Placement
from .model import Boundary, Diagram, Element, ElementKind, Relationship, Shape

HOST = "c4-drawio-service"
DEFAULT_TITLE = "C4 Diagram"
# tostring() would declare the locale encoding for str output
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
# code points XML 1.0 cannot carry, escaped or not
_ILLEGAL_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

# (fill, stroke) per kind; external elements share a grey palette
_PALETTE = {
    ElementKind.PERSON: ("#083F75", "#06315C"),
    ElementKind.SYSTEM: ("#1061B0", "#0D5091"),
    ElementKind.CONTAINER: ("#23A2D9", "#0E7DAD"),
    ElementKind.COMPONENT: ("#63BEF2", "#2086C9"),
}
_EXTERNAL_PALETTE = {
    ElementKind.PERSON: ("#6C6477", "#4D4D57"),
    ElementKind.SYSTEM: ("#8C8496", "#736782"),
    ElementKind.CONTAINER: ("#8C8496", "#736782"),
    ElementKind.COMPONENT: ("#8C8496", "#736782"),
}
_TYPE_NAMES = {
    ElementKind.PERSON: "Person",
    ElementKind.SYSTEM: "Software System",
    ElementKind.CONTAINER: "Container",
    ElementKind.COMPONENT: "Component",
}

_POINTS = (
    "points=[[0,0,0],[0.25,0,0],[0.5,0,0],[0.75,0,0],[1,0,0],[1,0.25,0],[1,0.5,0],"
    "[1,0.75,0],[1,1,0],[0.75,1,0],[0.5,1,0],[0.25,1,0],[0,1,0],[0,0.75,0],[0,0.5,0],[0,0.25,0]];"
)
_SHAPE_STYLES = {
    Shape.PERSON: "shape=mxgraph.c4.person2;",
    Shape.BOX: "rounded=1;arcSize=10;",
    Shape.DATABASE: "shape=cylinder3;size=15;boundedLbl=1;backgroundOutline=1;",
    Shape.QUEUE: "shape=cylinder3;direction=south;size=10;boundedLbl=1;backgroundOutline=1;",
}
_BOUNDARY_STYLE = (
    "rounded=1;fontSize=11;whiteSpace=wrap;html=1;dashed=1;arcSize=20;fillColor=none;"
    "strokeColor=#666666;fontColor=#333333;labelBackgroundColor=none;align=left;"
    "verticalAlign=bottom;labelBorderColor=none;spacingTop=0;spacing=10;dashPattern=8 4;"
    "metaEdit=1;rotatable=0;perimeter=rectanglePerimeter;noLabel=0;labelPadding=0;"
    "allowArrows=0;connectable=0;expand=0;recursiveResize=0;editable=1;pointerEvents=0;"
    "absoluteArcSize=1;container=1;collapsible=0;"
)
_EDGE_STYLE = (
    "endArrow=blockThin;html=1;fontSize=10;fontColor=#404040;strokeWidth=1;endFill=1;"
    "strokeColor=#828282;elbow=vertical;metaEdit=1;endSize=14;startSize=14;jumpStyle=arc;"
    "jumpSize=16;rounded=0;edgeStyle=orthogonalEdgeStyle;"
)

_ELEMENT_LABEL = (
    '<font style="font-size: 16px"><b>%c4Name%</b></font>'
    "<div>[{type_line}]</div><br>"
    '<div><font style="font-size: 11px"><font color="{muted}">%c4Description%</font></font></div>'
)
_BOUNDARY_LABEL = (
    '<font style="font-size: 16px"><b><div style="text-align: left">%c4Name%</div></b></font>'
    '<div style="text-align: left">[%c4Application%]</div>'
)
_EDGE_LABEL = '<div style="text-align: center"><b>%c4Description%</b></div>'
_EDGE_TECH_LABEL = _EDGE_LABEL + '<div style="text-align: center">[%c4Technology%]</div>'


def cell_id(alias: str) -> str:
    return f"c4-{alias}"


def _element_style(element: Element) -> str:
    fill, stroke = (_EXTERNAL_PALETTE if element.external else _PALETTE)[element.kind]
    font = "#000000" if element.kind is ElementKind.COMPONENT and not element.external else "#ffffff"
    return (
        f"{_SHAPE_STYLES[element.shape]}whiteSpace=wrap;html=1;fontSize=11;labelBackgroundColor=none;"
        f"fillColor={fill};strokeColor={stroke};fontColor={font};align=center;metaEdit=1;"
        f"resizable=0;{_POINTS}"
    )


def _geometry(cell: ET.Element, x: float, y: float, width: float, height: float) -> None:
    ET.SubElement(
        cell, "mxGeometry",
        x=str(x), y=str(y), width=str(width), height=str(height), **{"as": "geometry"},
    )


def _element_object(root: ET.Element, element: Element, placement: Placement) -> None:
    type_name = _TYPE_NAMES[element.kind]
    if element.external:
        type_name = f"External {type_name}"
    attrs = {
        "placeholders": "1",
        "c4Name": element.label,
        "c4Type": type_name,
        "c4Description": element.description,
        "id": cell_id(element.alias),
    }
    type_line = "%c4Type%"
    if element.kind in (ElementKind.CONTAINER, ElementKind.COMPONENT):
        attrs["c4Technology"] = element.technology
        if element.technology:
            type_line = "%c4Type%: %c4Technology%"
    muted = "#333333" if element.kind is ElementKind.COMPONENT and not element.external else "#cccccc"
    attrs["label"] = _ELEMENT_LABEL.format(type_line=type_line, muted=muted)

    obj = ET.SubElement(root, "object", attrs)
    cell = ET.SubElement(
        obj, "mxCell",
        style=_element_style(element), vertex="1",
        parent=cell_id(element.parent) if element.parent else "1",
    )
    box = placement.boxes[element.alias]
    _geometry(cell, box.x, box.y, box.width, box.height)


def _boundary_object(root: ET.Element, boundary: Boundary, placement: Placement) -> None:
    obj = ET.SubElement(root, "object", {
        "placeholders": "1",
        "c4Name": boundary.label,
        "c4Type": "ScopeBoundary",
        "c4Application": boundary.boundary_type,
        "label": _BOUNDARY_LABEL,
        "id": cell_id(boundary.alias),
    })
    cell = ET.SubElement(
        obj, "mxCell",
        style=_BOUNDARY_STYLE, vertex="1",
        parent=cell_id(boundary.parent) if boundary.parent else "1",
    )
    box = placement.boxes[boundary.alias]
    _geometry(cell, box.x, box.y, box.width, box.height)


def _relationship_object(root: ET.Element, rel: Relationship, index: int) -> None:
    attrs = {
        "placeholders": "1",
        "c4Type": "Relationship",
        "c4Description": rel.label,
        "c4Technology": rel.technology,
        "label": _EDGE_TECH_LABEL if rel.technology else _EDGE_LABEL,
        "id": f"rel-{index}",
    }
    if rel.description:
        attrs["tooltip"] = rel.description
    style = _EDGE_STYLE
    if rel.bidirectional:
        style += "startArrow=blockThin;startFill=1;"
    obj = ET.SubElement(root, "object", attrs)
    cell = ET.SubElement(
        obj, "mxCell",
        style=style, edge="1", parent="1",
        source=cell_id(rel.source), target=cell_id(rel.target),
    )
    ET.SubElement(cell, "mxGeometry", width="240", relative="1", **{"as": "geometry"})


def render(diagram: Diagram, placement: Placement) -> str:
    """Serialize `diagram` with the boxes from `placement` as draw.io XML.

    Boundaries are written before their members so every cell's parent
    precedes it; relationships come last.
    """
    mxfile = ET.Element("mxfile", host=HOST, agent=f"{HOST}/{__version__}", type="device")
    page = ET.SubElement(mxfile, "diagram", id="c4-diagram", name=diagram.title or DEFAULT_TITLE)
    model = ET.SubElement(
        page, "mxGraphModel",
        dx=str(placement.width), dy=str(placement.height),
        grid="1", gridSize="10", guides="1", tooltips="1", connect="1", arrows="1",
        fold="1", page="1", pageScale="1",
        pageWidth=str(max(placement.width, 850)), pageHeight=str(max(placement.height, 1100)),
        math="0", shadow="0",
    )
    root = ET.SubElement(model, "root")
    ET.SubElement(root, "mxCell", id="0")
    ET.SubElement(root, "mxCell", id="1", parent="0")

    def write_scope(scope: str | None) -> None:
        for alias in diagram.members(scope):
            if alias in diagram.boundaries:
                _boundary_object(root, diagram.boundaries[alias], placement)
                write_scope(alias)
            else:
                _element_object(root, diagram.elements[alias], placement)

    write_scope(None)
    for index, rel in enumerate(diagram.relationships, start=1):
        _relationship_object(root, rel, index)

    for node in mxfile.iter():
        for key, value in node.attrib.items():
            node.set(key, _ILLEGAL_XML_CHARS.sub("", value))
    ET.indent(mxfile)
    return XML_DECLARATION + ET.tostring(mxfile, encoding="unicode")
