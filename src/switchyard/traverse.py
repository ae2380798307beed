"""Depth-first matcher over the route table.

Every child key is a regex source. Walking down the table concatenates them,
delimiter-separated, into one cumulative pattern that is matched against the
start of the path; capture groups along the way become the captures.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from switchyard.table import Handler, Node


@dataclass(slots=True)
class Match:
    """Handlers resolved for a path.

    ``layers`` holds one ``[before, handler]`` group per matched level, in run
    order. ``after`` holds the hooks to run when the next dispatch begins.
    """

    layers: list[list[Handler]]
    after: list[Handler]
    captures: tuple[str | None, ...] = ()


@lru_cache(maxsize=1024)
def _compile(source: str) -> re.Pattern[str]:
    return re.compile(source)


def _present(*handlers: Handler | None) -> list[Handler]:
    return [h for h in handlers if h is not None]


def traverse(
    method: str,
    path: str,
    root: Node,
    *,
    delimiter: str = "/",
    strict: bool = True,
    recurse: bool = False,
) -> Match | None:
    """Resolve method/path against the table rooted at root.

    Siblings are tried in declaration order and the first one whose subtree
    produces a terminal match wins; there is no specificity scoring. With
    ``recurse``, the ``before``/``on`` hooks of every level passed through are
    put ahead of the matched handler and their ``after`` hooks appended to the
    after layer.

    Returns None when nothing matches.
    """
    if path == delimiter and root.slot(method) is not None:
        return Match(
            layers=[_present(root.slot("before"), root.slot(method))],
            after=_present(root.slot("after")),
        )
    return _traverse(method, path, root, "", re.escape(delimiter), strict, recurse)


def _traverse(
    method: str,
    path: str,
    node: Node,
    prefix: str,
    delimiter: str,
    strict: bool,
    recurse: bool,
) -> Match | None:
    for key, child in node.children():
        current = prefix + delimiter + key
        exact = current if strict else f"{current}(?:{delimiter})?"
        match = _compile(exact).match(path)
        if match is None:
            continue

        if match.group(0) == path and child.slot(method) is not None:
            return Match(
                layers=[_present(child.slot("before"), child.slot(method))],
                after=_present(child.slot("after")),
                captures=match.groups(),
            )

        found = _traverse(method, path, child, current, delimiter, strict, recurse)
        if found is None:
            continue  # try the next sibling
        if recurse:
            hooks = _present(child.slot("before"), child.slot("on"))
            if hooks:
                found.layers.insert(0, hooks)
            found.after.extend(_present(child.slot("after")))
        return found

    return None
