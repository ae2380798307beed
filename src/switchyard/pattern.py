"""Path segment compiler.

Turns declared segments such as ``:id``, ``*`` or ``:slug.html`` into the
regex sources that key the route table. Segments are matched as regexes, so a
literal segment is simply one the compiler leaves untouched.
"""

import re
from collections.abc import Callable, Iterable, Iterator

type Substitution = Callable[[str], str]

DEFAULT_CAPTURE = "([a-zA-Z0-9-]+)"
WILDCARD_CAPTURE = r"([_\.\(\)!\\ %@&a-zA-Z0-9-]+)"

# `*` not used as a regex quantifier, `:` not opening a `(?:` group
_WILDCARD = re.compile(r"(?<![)\].}\\])(?<!\\\w)\*")
_TOKEN = re.compile(r"(?<!\?):([^/]+)")


def is_pattern(segment: str) -> bool:
    """True when the segment holds a wildcard or a named token."""
    return bool(_WILDCARD.search(segment) or _TOKEN.search(segment))


def compile_segment(segment: str, substitutions: Iterable[Substitution] = ()) -> str:
    """Compile a declared path segment into a regex source.

    Wildcards expand to a broad URL-safe capture. Every ``:token`` is offered
    to each substitution in registration order and the first one that changes
    it wins; a token nobody claims becomes ``([a-zA-Z0-9-]+)``.

    Compiling compiler output returns it unchanged.
    """
    substitutions = tuple(substitutions)
    segment = _WILDCARD.sub(lambda _: WILDCARD_CAPTURE, segment)
    return _TOKEN.sub(lambda m: _paramify(m.group(0), substitutions), segment)


def _paramify(token: str, substitutions: tuple[Substitution, ...]) -> str:
    for substitute in substitutions:
        replaced = substitute(token)
        if replaced != token:
            return replaced
    return DEFAULT_CAPTURE


class ParamTable:
    """Ordered registry of ``:token`` substitutions."""

    __slots__ = ("_substitutions",)
    _substitutions: dict[str, Substitution]

    def __init__(self) -> None:
        self._substitutions = {}

    def __iter__(self) -> Iterator[Substitution]:
        return iter(tuple(self._substitutions.values()))

    def __len__(self) -> int:
        return len(self._substitutions)

    def __contains__(self, token: object) -> bool:
        return token in self._substitutions

    def register(self, token: str, matcher: str | re.Pattern[str]) -> str:
        """Replace ``token`` with ``matcher`` wherever it appears in a segment.

        The token is given a leading ``:`` when missing. A matcher without a
        capturing group is wrapped in one so the matched value is captured.
        Returns the normalized token.
        """
        if not token.startswith(":"):
            token = ":" + token
        source = matcher.pattern if isinstance(matcher, re.Pattern) else matcher
        if re.compile(source).groups == 0:
            source = f"({source})"
        compiled = re.compile(re.escape(token) + r"(?!\w)")

        def substitute(segment: str) -> str:
            return compiled.sub(lambda _: source, segment)

        self._substitutions[token] = substitute
        return token
