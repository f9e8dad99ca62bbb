"""
Regex-based C4-PlantUML parser.

Reads the C4 macro subset of PlantUML (elements, boundaries and
relationships) into a `Diagram`. Preprocessor directives, styling macros and
plain PlantUML statements are skipped; the layout and rendering stages only
need the model.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from .model import Boundary, Diagram, Element, ElementKind, Relationship, Shape


class C4ParseError(ValueError):
    def __init__(self, message: str, line: int = 0) -> None:
        super().__init__(f"Line {line}: {message}" if line else message)
        self.line = line


# ───────────────────────────────────────────────
# Macro tables
# ───────────────────────────────────────────────

# name -> (kind, shape, external)
_ELEMENT_MACROS: Dict[str, Tuple[ElementKind, Shape, bool]] = {}
for _kind in ElementKind:
    _variants = [("", Shape.PERSON if _kind is ElementKind.PERSON else Shape.BOX)]
    if _kind is not ElementKind.PERSON:
        _variants += [("Db", Shape.DATABASE), ("Queue", Shape.QUEUE)]
    for _suffix, _shape in _variants:
        _ELEMENT_MACROS[f"{_kind.value}{_suffix}"] = (_kind, _shape, False)
        _ELEMENT_MACROS[f"{_kind.value}{_suffix}_Ext"] = (_kind, _shape, True)

# Positional parameters after the alias, per kind
_ELEMENT_PARAMS: Dict[ElementKind, Tuple[str, ...]] = {
    ElementKind.PERSON: ("label", "descr"),
    ElementKind.SYSTEM: ("label", "descr"),
    ElementKind.CONTAINER: ("label", "techn", "descr"),
    ElementKind.COMPONENT: ("label", "techn", "descr"),
}

_BOUNDARY_MACROS: Dict[str, Optional[str]] = {
    "Boundary": None,
    "Enterprise_Boundary": "Enterprise",
    "System_Boundary": "System",
    "Container_Boundary": "Container",
}

# name -> (direction hint, bidirectional, swap endpoints)
_REL_MACROS: Dict[str, Tuple[Optional[str], bool, bool]] = {
    "Rel_Back": ("up", False, True),
    "Rel_Neighbor": ("right", False, False),
    "BiRel_Neighbor": ("right", True, False),
}
for _prefix, _bidir in (("Rel", False), ("BiRel", True)):
    _REL_MACROS[_prefix] = (None, _bidir, False)
    for _short, _long in (("U", "Up"), ("D", "Down"), ("L", "Left"), ("R", "Right")):
        _REL_MACROS[f"{_prefix}_{_short}"] = (_long.lower(), _bidir, False)
        _REL_MACROS[f"{_prefix}_{_long}"] = (_long.lower(), _bidir, False)

_IGNORED_KEYWORDS = ("skinparam", "hide", "show", "left to right", "top to bottom", "scale")

_MACRO_RE = re.compile(r'^(?P<name>[A-Za-z_]\w*)\s*\((?P<args>.*)\)\s*$')
_NAMED_ARG_RE = re.compile(r'^\$(?P<key>\w+)\s*=\s*(?P<value>.*)$', re.DOTALL)
_ALIAS_RE = re.compile(r'^[A-Za-z_][\w.]*$')


# ───────────────────────────────────────────────
# Text helpers
# ───────────────────────────────────────────────

def _strip_block_comments(lines: List[str]) -> List[str]:
    """Blank out /' ... '/ comments, keeping line numbering intact."""
    out: List[str] = []
    in_comment = False
    for line in lines:
        kept = ""
        rest = line
        while rest:
            if in_comment:
                end = rest.find("'/")
                if end < 0:
                    rest = ""
                else:
                    rest = rest[end + 2:]
                    in_comment = False
            else:
                start = rest.find("/'")
                if start < 0:
                    kept += rest
                    rest = ""
                else:
                    kept += rest[:start]
                    rest = rest[start + 2:]
                    in_comment = True
        out.append(kept)
    return out


def _diagram_body(text: str) -> List[Tuple[int, str]]:
    """Return (line number, text) pairs between @startuml and @enduml."""
    lines = _strip_block_comments(text.splitlines())
    numbered = list(enumerate(lines, start=1))
    start = next((i for i, (_, l) in enumerate(numbered) if l.strip().lower().startswith("@startuml")), None)
    if start is not None:
        numbered = numbered[start + 1:]
        end = next((i for i, (_, l) in enumerate(numbered) if l.strip().lower().startswith("@enduml")), None)
        if end is not None:
            numbered = numbered[:end]
    return numbered


def _paren_balance(text: str) -> int:
    depth = 0
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote and ch == "(":
            depth += 1
        elif not in_quote and ch == ")":
            depth -= 1
    return depth


def _brace_segments(text: str) -> List[str]:
    """Split a statement around `{` and `}` found outside quotes and parentheses.

    `package "Core" { System(s) }` becomes
    `['package "Core"', '{', 'System(s)', '}']`.
    """
    segments: List[str] = []
    buf: List[str] = []
    depth = 0
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote and ch == "(":
            depth += 1
        elif not in_quote and ch == ")":
            depth -= 1
        elif not in_quote and depth <= 0 and ch in "{}":
            if "".join(buf).strip():
                segments.append("".join(buf).strip())
            segments.append(ch)
            buf = []
            continue
        buf.append(ch)
    if "".join(buf).strip():
        segments.append("".join(buf).strip())
    return segments


def _statements(text: str) -> List[Tuple[int, str]]:
    """Join macro calls whose argument list spans several lines."""
    statements: List[Tuple[int, str]] = []
    pending: Optional[Tuple[int, str]] = None
    for lineno, raw in _diagram_body(text):
        line = raw.strip()
        if pending is not None:
            start, acc = pending
            acc = f"{acc} {line}"
            if _paren_balance(acc) <= 0:
                statements.append((start, acc))
                pending = None
            else:
                pending = (start, acc)
            continue
        if not line or line.startswith("'"):
            continue
        if _MACRO_RE.match(line) is None and re.match(r'^[A-Za-z_]\w*\s*\(', line) and _paren_balance(line) > 0:
            pending = (lineno, line)
            continue
        statements.append((lineno, line))
    if pending is not None:
        raise C4ParseError("unterminated argument list", pending[0])
    return statements


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = value[1:-1]
    return value.replace("\\n", "\n").strip()


def split_args(raw: str, line: int = 0) -> Tuple[List[str], Dict[str, str]]:
    """Split a macro argument list into positional and `$named` arguments."""
    parts: List[str] = []
    buf: List[str] = []
    in_quote = False
    for ch in raw:
        if ch == '"':
            in_quote = not in_quote
            buf.append(ch)
        elif ch == "," and not in_quote:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    if in_quote:
        raise C4ParseError("unterminated string in argument list", line)
    tail = "".join(buf)
    if tail.strip() or parts:
        parts.append(tail)

    positional: List[str] = []
    named: Dict[str, str] = {}
    for part in parts:
        m = _NAMED_ARG_RE.match(part.strip())
        if m:
            named[m.group("key").lower()] = _unquote(m.group("value"))
        else:
            positional.append(_unquote(part))
    return positional, named


# ───────────────────────────────────────────────
# Parser
# ───────────────────────────────────────────────

class _Parser:
    def __init__(self) -> None:
        self.diagram = Diagram()
        # (boundary alias or None for a plain PlantUML block, line of the '{')
        self.stack: List[Tuple[Optional[str], int]] = []
        self.pending_boundary: Optional[str] = None

    @property
    def scope(self) -> Optional[str]:
        """Innermost open boundary; plain blocks such as `package` are transparent."""
        return next((alias for alias, _ in reversed(self.stack) if alias is not None), None)

    def _claim_alias(self, alias: str, line: int) -> None:
        if not alias:
            raise C4ParseError("missing alias", line)
        if not _ALIAS_RE.match(alias):
            raise C4ParseError(f"invalid alias '{alias}'", line)
        if alias in self.diagram.elements or alias in self.diagram.boundaries:
            raise C4ParseError(f"duplicate alias '{alias}'", line)

    def feed(self, line: int, text: str) -> None:
        if text.startswith("!") or text.startswith("@"):
            return
        if text.lower().startswith("title "):
            self.diagram.title = _unquote(text[6:])
            return
        for segment in _brace_segments(text):
            self._segment(line, segment)

    def _segment(self, line: int, text: str) -> None:
        alias, self.pending_boundary = self.pending_boundary, None
        if text == "{":
            # a block opened by anything but a boundary macro only groups lines
            self.stack.append((alias, line))
            return
        if text == "}":
            if not self.stack:
                raise C4ParseError("unexpected '}'", line)
            self.stack.pop()
            return
        if text.lower().startswith(_IGNORED_KEYWORDS):
            return

        m = _MACRO_RE.match(text)
        if m is None:
            return
        name = m.group("name")
        if name in _ELEMENT_MACROS:
            self._element(name, m.group("args"), line)
        elif name in _BOUNDARY_MACROS:
            self._boundary(name, m.group("args"), line)
        elif name in _REL_MACROS:
            self._relationship(name, m.group("args"), line)

    def _element(self, name: str, raw_args: str, line: int) -> None:
        kind, shape, external = _ELEMENT_MACROS[name]
        positional, named = split_args(raw_args, line)
        alias = named.get("alias") or (positional[0] if positional else "")
        self._claim_alias(alias, line)
        values = dict(zip(_ELEMENT_PARAMS[kind], positional[1:]))
        values.update({k: v for k, v in named.items() if k in ("label", "descr", "techn")})
        self.diagram.elements[alias] = Element(
            alias=alias,
            kind=kind,
            label=values.get("label") or alias,
            description=values.get("descr", ""),
            technology=values.get("techn", ""),
            shape=shape,
            external=external,
            parent=self.scope,
            line=line,
        )

    def _boundary(self, name: str, raw_args: str, line: int) -> None:
        positional, named = split_args(raw_args, line)
        alias = named.get("alias") or (positional[0] if positional else "")
        self._claim_alias(alias, line)
        label = named.get("label") or (positional[1] if len(positional) > 1 else "") or alias
        boundary_type = _BOUNDARY_MACROS[name]
        if boundary_type is None:
            boundary_type = named.get("type") or (positional[2] if len(positional) > 2 else "") or "Boundary"
        self.diagram.boundaries[alias] = Boundary(
            alias=alias,
            label=label,
            boundary_type=boundary_type,
            parent=self.scope,
            line=line,
        )
        # the next segment decides whether a block opens
        self.pending_boundary = alias

    def _relationship(self, name: str, raw_args: str, line: int) -> None:
        direction, bidirectional, swap = _REL_MACROS[name]
        positional, named = split_args(raw_args, line)
        source = named.get("from") or (positional[0] if positional else "")
        target = named.get("to") or (positional[1] if len(positional) > 1 else "")
        if not source or not target:
            raise C4ParseError(f"{name} needs a source and a target", line)
        if swap:
            source, target = target, source
        self.diagram.relationships.append(Relationship(
            source=source,
            target=target,
            label=named.get("label") or (positional[2] if len(positional) > 2 else ""),
            technology=named.get("techn") or (positional[3] if len(positional) > 3 else ""),
            description=named.get("descr") or (positional[4] if len(positional) > 4 else ""),
            bidirectional=bidirectional,
            direction=direction,
            line=line,
        ))

    def finish(self) -> Diagram:
        if self.stack:
            alias, brace_line = self.stack[-1]
            if alias is None:
                raise C4ParseError("'{' is not closed", brace_line)
            raise C4ParseError(f"boundary '{alias}' is not closed", self.diagram.boundaries[alias].line)
        if not self.diagram.elements:
            raise C4ParseError("No C4 elements found in input")
        known = self.diagram.elements.keys() | self.diagram.boundaries.keys()
        for rel in self.diagram.relationships:
            for alias in (rel.source, rel.target):
                if alias not in known:
                    raise C4ParseError(f"relationship references unknown element '{alias}'", rel.line)
        return self.diagram


def parse(text: str) -> Diagram:
    """Parse C4-PlantUML text into a Diagram.

    Raises:
        C4ParseError: on structural problems (unknown aliases, unbalanced
            braces, duplicate aliases) or when no element is declared.
    """
    parser = _Parser()
    for line, statement in _statements(text):
        parser.feed(line, statement)
    return parser.finish()
