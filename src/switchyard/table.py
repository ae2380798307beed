"""Segment-keyed route table.

Each node maps a compiled segment to a child node, or a method/hook name to a
handler slot. Both share one insertion-ordered namespace: the order routes are
declared in is the order they are matched in.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from switchyard.errors import InvalidRouteContext
from switchyard.pattern import Substitution, compile_segment, is_pattern

logger = logging.getLogger(__name__)

type Handler = Callable[..., Any] | str | list[Handler]
type Declaration = tuple[str, Sequence[str], Handler]

HOOKS = ("before", "on", "after")


class SegmentKind(Enum):
    """How a node's key was derived from its declared segment."""

    ROOT = "root"  # The table root, reached through the bare delimiter.
    LITERAL = "literal"  # Declared segment used verbatim as the key.
    PATTERN = "pattern"  # Key compiled from `:token` / `*` segments.

    def __repr__(self) -> str:
        return str(self.value)


@dataclass(slots=True)
class Node:
    """Route table node.

    ``segment`` is the segment as declared, the key under which the node is
    stored in its parent is the compiled form of it.
    """

    segment: str = ""
    kind: SegmentKind = SegmentKind.ROOT
    entries: dict[str, Node | Handler] = field(default_factory=dict)

    def slot(self, method: str) -> Handler | None:
        """Handler slot for method, ``None`` when absent or held by a route."""
        value = self.entries.get(method)
        if isinstance(value, Node):
            return None
        return value

    def children(self) -> Iterator[tuple[str, Node]]:
        for key, value in self.entries.items():
            if isinstance(value, Node):
                yield key, value

    def slots(self) -> Iterator[tuple[str, Handler]]:
        for key, value in self.entries.items():
            if not isinstance(value, Node):
                yield key, value


def segment_key(
    segment: str, substitutions: Iterable[Substitution] = ()
) -> tuple[str, SegmentKind]:
    """Table key and kind for a declared segment."""
    if is_pattern(segment):
        return compile_segment(segment, substitutions), SegmentKind.PATTERN
    return segment, SegmentKind.LITERAL


def insert(
    root: Node,
    method: str,
    segments: Sequence[str],
    handler: Handler,
    substitutions: Iterable[Substitution] = (),
) -> None:
    """Insert handler for method at the node described by segments.

    Empty segments are dropped; no segments at all attaches to ``root`` itself.
    Missing nodes along the way are created.
    """
    substitutions = tuple(substitutions)
    node = root
    for segment in segments:
        if not segment:
            continue
        key, kind = segment_key(segment, substitutions)
        child = node.entries.get(key)
        if child is None:
            child = Node(segment=segment, kind=kind)
            node.entries[key] = child
        elif not isinstance(child, Node):
            msg = f"invalid route context: {segment!r} is held by a handler"
            raise InvalidRouteContext(msg)
        node = child
    _attach(node, method, handler)
    logger.debug("route inserted: %s %s", method, [s for s in segments if s])


def _attach(node: Node, method: str, handler: Handler) -> None:
    """Merge handler into the node's method slot, never overwriting."""
    existing = node.entries.get(method)
    if existing is None:
        node.entries[method] = list(handler) if isinstance(handler, list) else handler
    elif isinstance(existing, Node):
        msg = f"invalid route context: {method!r} is held by a nested route"
        raise InvalidRouteContext(msg)
    elif isinstance(existing, list):
        existing.append(handler)
    else:
        node.entries[method] = [existing, handler]


def build(
    declarations: Iterable[Declaration], substitutions: Iterable[Substitution] = ()
) -> Node:
    """Table holding declarations, inserted in order.

    Pattern keys are compiled from each declared segment with the current
    substitutions, so two tokens that shared a node under the default capture
    split apart once one of them gets its own matcher.
    """
    substitutions = tuple(substitutions)
    root = Node()
    for method, segments, handler in declarations:
        insert(root, method, segments, handler, substitutions)
    return root


# --- Route listing ------------------------------------------------------------
type _Route = tuple[str, str, str]


def iter_routes(root: Node, delimiter: str = "/") -> Iterator[_Route]:
    """Yield (method, path, handler label) in declaration order."""
    yield from _collect_routes(root, [], delimiter)


def _collect_routes(node: Node, parts: list[str], delimiter: str) -> Iterator[_Route]:
    path = delimiter + delimiter.join(parts)
    for key, value in node.entries.items():
        if isinstance(value, Node):
            yield from _collect_routes(value, [*parts, value.segment], delimiter)
        else:
            yield key, path, _label(value)


def format_routes(root: Node, *, delimiter: str = "/", tree: bool = False) -> str:
    """Format the declared routes as a human-readable string.

    By default produces a column-aligned flat list in match order:

        on       /                 home
        before   /users            authorize
        get      /users/:id        get_user
        get      /files/*          [send_file, audit]

    With ``tree=True``, produces a visual tree instead:

        /
        ├── [on] home
        └── users
            ├── [before] authorize
            └── :id
                └── [get] get_user
    """
    if tree:
        lines = [delimiter]
        _render_tree(root, "", lines)
        return "\n".join(lines)

    routes = list(iter_routes(root, delimiter))
    if not routes:
        return ""
    method_w = max(len(r[0]) for r in routes)
    path_w = max(len(r[1]) for r in routes)
    return "\n".join(
        f"{method:<{method_w}}   {path:<{path_w}}   {label}"
        for method, path, label in routes
    )


def _render_tree(node: Node, prefix: str, lines: list[str]) -> None:
    """Recursively render a node's entries with tree-drawing prefixes."""
    items: list[tuple[str, Node | None]] = [
        (f"[{key}] {_label(value)}", None) for key, value in node.slots()
    ]
    items.extend((child.segment, child) for _, child in node.children())

    for i, (label, child) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{label}")
        if child is not None:
            extension = "    " if is_last else "│   "
            _render_tree(child, prefix + extension, lines)


def _label(handler: Handler) -> str:
    """Readable name of a handler slot."""
    if isinstance(handler, list):
        return "[" + ", ".join(_label(h) for h in handler) + "]"
    if isinstance(handler, str):
        return handler
    if hasattr(handler, "__qualname__"):
        return str(handler.__qualname__)
    return repr(handler)
