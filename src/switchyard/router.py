"""Pattern-based dispatcher.

Inspired by flatiron's director: routes are declared into a nested table,
dispatch walks it depth first and runs the ``before``/``on``/``after`` hooks
and method handlers it finds.
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from switchyard.errors import ConfigurationError, DispatchModeError, InvalidRouteContext
from switchyard.invoke import (
    STOP,
    Middleware,
    Outcome,
    Resource,
    Route,
    arun,
    run,
)
from switchyard.pattern import ParamTable
from switchyard.table import (
    HOOKS,
    Declaration,
    Handler,
    Node,
    build,
    format_routes,
    insert,
)
from switchyard.traverse import Match, traverse

logger = logging.getLogger(__name__)

type Recurse = bool | Literal["forward"]
type Callback = Callable[[BaseException | Literal[False] | None], Any]
type RouteSpec = Mapping[str, RouteSpec | Handler]


@dataclass(frozen=True, slots=True)
class RouterOptions:
    """Router configuration. Immutable, configure() swaps in an updated copy.

    recurse: ``True`` runs the ``before``/``on`` hooks of every level passed
        through, outermost first, ahead of the matched handler. ``"forward"``
        reverses that order, matched handler first and the root last. Note
        that director names these the other way round: there ``true`` bubbles
        up from the leaf and ``"forward"`` runs from the root down.
    asynchronous: handlers are awaited in series through ``adispatch``.
    delimiter: path segment separator.
    strict: when false, a single trailing delimiter is tolerated.
    notfound: handler called with the ``Route`` when nothing matches.
    resource: mapping that string handlers are looked up in.
    before, on, after: global hooks wrapped around every dispatch.
    """

    recurse: Recurse = False
    asynchronous: bool = False
    delimiter: str = "/"
    strict: bool = True
    notfound: Handler | None = None
    resource: Resource | None = None
    before: Handler | None = None
    on: Handler | None = None
    after: Handler | None = None

    def __post_init__(self) -> None:
        if self.recurse not in (False, True, "forward"):
            msg = f"recurse must be True, False or 'forward', provided {self.recurse=}"
            raise ConfigurationError(msg)
        if not self.delimiter:
            msg = "delimiter cannot be empty"
            raise ConfigurationError(msg)


@dataclass(slots=True)
class Session:
    """State carried from one dispatch to the next.

    The after layer recorded by a dispatch runs at the start of the following
    one. A router owns a default session; pass a separate one per caller when
    dispatching concurrently.
    """

    dispatched: bool = False
    after: list[Handler] = field(default_factory=list)
    route: Route | None = None


class Router:
    __slots__ = (
        "_declarations",
        "_extensions",
        "_methods",
        "_middleware",
        "_options",
        "_params",
        "_scope",
        "_session",
        "_table",
    )
    _table: Node
    _declarations: list[Declaration]
    _params: ParamTable
    _options: RouterOptions
    _methods: set[str]
    _extensions: set[str]
    _scope: list[str]
    _middleware: tuple[Middleware, ...]
    _session: Session

    def __init__(
        self,
        routes: RouteSpec | None = None,
        *,
        methods: Iterable[str] = (),
        **options: Any,
    ) -> None:
        self._table = Node()
        self._declarations = []
        self._params = ParamTable()
        self._options = RouterOptions(**options)
        self._methods = set(HOOKS)
        self._extensions = set()
        self._scope = []
        self._middleware = ()
        self._session = Session()
        self.extend(methods)
        self.mount(routes or {})

    def __getattr__(self, name: str) -> Callable[..., None]:
        # per-method helpers registered through extend()
        if name.startswith("_") or name not in self._extensions:
            msg = f"{type(self).__name__!r} object has no attribute {name!r}"
            raise AttributeError(msg)

        def declare(
            path: str | re.Pattern[str] | Handler, handler: Handler | None = None
        ) -> None:
            if handler is None:
                path, handler = "", path
            self.on(name, path, handler)

        return declare

    # --- Configuration ------------------------------------------------------------
    @property
    def config(self) -> RouterOptions:
        return self._options

    @property
    def delimiter(self) -> str:
        return self._options.delimiter

    @property
    def table(self) -> Node:
        return self._table

    @property
    def session(self) -> Session:
        return self._session

    def configure(self, **options: Any) -> Router:
        """Update the given options, keeping the others."""
        self._options = replace(self._options, **options)
        return self

    def extend(self, methods: Iterable[str]) -> None:
        """Register method names and a helper per method.

        ``router.extend(["get"])`` lets ``router.get("/users", handler)``
        declare a route, and makes ``get`` keys in mounted tables attach
        handlers instead of naming path segments.
        """
        for method in methods:
            if hasattr(type(self), method):
                msg = f"method name {method!r} shadows a Router attribute"
                raise ConfigurationError(msg)
            self._methods.add(method)
            self._extensions.add(method)

    def use(self, *middleware: Middleware) -> None:
        """Wrap every invoked handler in middleware, first registered outermost."""
        self._middleware = self._middleware + middleware

    # --- Declaration --------------------------------------------------------------
    def on(
        self,
        method: str | Sequence[str],
        path: str | re.Pattern[str] | Handler,
        handler: Handler | None = None,
    ) -> None:
        """Registers handler for method at path, relative to the current scope.

        ``on(path, handler)`` registers the ``on`` hook; a list of methods
        registers handler for each of them.
        """
        if handler is None:
            method, path, handler = "on", method, path
        if not isinstance(method, str):
            for m in method:
                self.on(m, path, handler)
            return
        self._declare(method, [*self._scope, *self._split(path)], handler)

    route = on

    def insert(self, method: str, segments: Sequence[str], handler: Handler) -> None:
        """Inserts handler for method at already split segments."""
        self._declare(method, list(segments), handler)

    @contextmanager
    def scope(self, path: str | re.Pattern[str]) -> Iterator[Router]:
        """Nests declarations made inside the block under path."""
        segments = self._split(path)
        length = len(self._scope)
        self._scope.extend(segments)
        try:
            yield self
        finally:
            del self._scope[length:]

    def path(
        self, path: str | re.Pattern[str], builder: Callable[[Router], Any]
    ) -> None:
        """Calls builder with this router, declarations nested under path."""
        with self.scope(path):
            builder(self)

    def param(self, token: str, matcher: str | re.Pattern[str]) -> None:
        """Replaces ``:token`` with matcher in every route, declared or to come."""
        self._params.register(token, matcher)
        self._table = build(self._declarations, self._params)

    def mount(self, routes: RouteSpec, path: Sequence[str] | None = None) -> None:
        """Declares a nested mapping of routes.

        Keys starting with the delimiter, or that aren't a method/hook name,
        are path segments; mappings under them nest, anything else is their
        ``on`` handler. Method/hook keys attach their handler at the current
        level:

            router.mount({"/users": {"/:id": {"on": get_user}}})
        """
        if not isinstance(routes, Mapping):
            return
        scope = list(self._scope if path is None else path)
        delimiter = self.delimiter

        for key, value in routes.items():
            parts = key.split(delimiter)
            if parts[0] and parts[0] in self._methods:
                if isinstance(value, Mapping):
                    msg = f"invalid route context: {key!r} cannot hold nested routes"
                    raise InvalidRouteContext(msg)
                self._declare(key, scope, value)
            elif isinstance(value, Mapping):
                self.mount(value, [*scope, *parts])
            else:
                self._declare("on", [*scope, *parts], value)

    def _declare(self, method: str, segments: list[str], handler: Handler) -> None:
        insert(self._table, method, segments, handler, self._params)
        self._declarations.append((method, segments, handler))

    def _split(self, path: str | re.Pattern[str]) -> list[str]:
        if isinstance(path, re.Pattern):
            path = path.pattern.replace("\\/", "/")
        return path.split(self.delimiter)

    # --- Dispatch -----------------------------------------------------------------
    def traverse(self, method: str, path: str) -> Match | None:
        """Handlers matched for method/path, None when nothing matches."""
        options = self._options
        match = traverse(
            method,
            path,
            self._table,
            delimiter=options.delimiter,
            strict=options.strict,
            recurse=bool(options.recurse),
        )
        if match is not None and options.recurse == "forward":
            match.layers.reverse()
        return match

    def dispatch(
        self, method: str, path: str, *, session: Session | None = None
    ) -> bool:
        """Runs the handlers matched for method/path.

        Returns whether anything matched. Handler exceptions propagate.
        """
        if self._options.asynchronous:
            msg = "router is asynchronous, use adispatch()"
            raise DispatchModeError(msg)
        if session is None:
            session = self._session

        match, prior = self._begin(method, path, session)
        route = session.route
        if match is None:
            self._not_found(route)
            return False
        resource, middleware = self._options.resource, self._middleware
        if prior is not None:
            run(*prior, resource=resource, middleware=middleware)
        run(self._run_list(match), route, resource=resource, middleware=middleware)
        return True

    async def adispatch(
        self,
        method: str,
        path: str,
        callback: Callback | None = None,
        *,
        session: Session | None = None,
    ) -> bool:
        """Awaits the handlers matched for method/path in series.

        callback receives None when the series completes, False when a handler
        stopped it, or the exception a handler raised. Without a callback the
        exception propagates. Returns whether anything matched.
        """
        if not self._options.asynchronous:
            msg = "router is synchronous, use dispatch()"
            raise DispatchModeError(msg)
        if session is None:
            session = self._session

        match, prior = self._begin(method, path, session)
        route = session.route
        if match is None:
            if self._options.notfound is not None:
                await self._complete(self._anot_found(route), callback)
            return False
        await self._complete(self._arun(match, route, prior), callback)
        return True

    def _begin(
        self, method: str, path: str, session: Session
    ) -> tuple[Match | None, tuple[list[Handler], Route] | None]:
        """Match and rotate session state.

        Returns the match and, when a previous dispatch left one, the after
        layer to run first with the route it belongs to.
        """
        match = self.traverse(method, path)
        dispatched, previous = session.dispatched, session.route
        session.dispatched = True

        if match is None:
            logger.debug("dispatch %s %s: no match", method, path)
            session.after = []
            session.route = Route(method, path)
            return None, None

        logger.debug(
            "dispatch %s %s: %d layer(s), captures=%r",
            method,
            path,
            len(match.layers),
            match.captures,
        )
        prior = None
        if dispatched and previous is not None:
            after = [h for h in (self._options.after, *session.after) if h is not None]
            if after:
                prior = (after, previous)
        session.after = match.after
        session.route = Route(method, path, match.captures)
        return match, prior

    def _run_list(self, match: Match) -> list[Handler]:
        options = self._options
        run_list: list[Handler] = [] if options.before is None else [options.before]
        for layer in match.layers:
            run_list.extend(layer)
        if options.on is not None:
            run_list.append(options.on)
        return run_list

    def _not_found(self, route: Route) -> None:
        if self._options.notfound is not None:
            run(
                [self._options.notfound],
                route,
                (route,),
                resource=self._options.resource,
                middleware=self._middleware,
            )

    async def _anot_found(self, route: Route) -> Outcome:
        return await arun(
            [self._options.notfound],
            route,
            (route,),
            resource=self._options.resource,
            middleware=self._middleware,
        )

    async def _arun(
        self, match: Match, route: Route, prior: tuple[list[Handler], Route] | None
    ) -> Outcome:
        resource, middleware = self._options.resource, self._middleware
        if prior is not None:
            await arun(*prior, resource=resource, middleware=middleware)
        return await arun(
            self._run_list(match), route, resource=resource, middleware=middleware
        )

    async def _complete(
        self, series: Awaitable[Outcome], callback: Callback | None
    ) -> None:
        """Awaits series and reports how it ended to callback."""
        try:
            result = await series
        except Exception as exc:
            if callback is None:
                raise
            reported = callback(exc)
        else:
            if callback is None:
                return
            reported = callback(False if result is STOP else None)
        if inspect.isawaitable(reported):
            await reported

    # --- Introspection ------------------------------------------------------------
    def format_routes(self, *, tree: bool = False) -> str:
        """Declared routes as a flat list, or a tree with ``tree=True``."""
        return format_routes(self._table, delimiter=self.delimiter, tree=tree)
