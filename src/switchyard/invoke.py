"""Run-list invocation.

Synchronous routers walk the run-list as a short-circuiting fold, asynchronous
routers await it as a strict series. In both modes a handler returning
``False`` (or ``STOP``) ends the walk; it is a signal, not an error.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from typing import Any

from switchyard.errors import DispatchModeError, MissingResourceHandler
from switchyard.table import Handler

type Middleware = Callable[[Callable[..., Any]], Callable[..., Any]]
type Resource = Mapping[str, Callable[..., Any]]


class Outcome(Enum):
    """Result of invoking a handler or a whole run-list."""

    CONTINUE = "continue"
    STOP = "stop"

    def __repr__(self) -> str:
        return str(self.value)


CONTINUE = Outcome.CONTINUE
STOP = Outcome.STOP


@dataclass(frozen=True, slots=True)
class Route:
    """The dispatch a run-list belongs to."""

    method: str
    path: str
    captures: tuple[str | None, ...] = ()


current_route: ContextVar[Route] = ContextVar("current_route")


def outcome(value: object) -> Outcome:
    if value is False or value is STOP:
        return STOP
    return CONTINUE


def flatten(run_list: Iterable[Handler | None]) -> Iterator[Handler]:
    """Depth-first walk through nested handler lists."""
    for entry in run_list:
        if isinstance(entry, list):
            yield from flatten(entry)
        elif entry is not None:
            yield entry


def resolve(
    entry: object,
    resource: Resource | None = None,
    middleware: Sequence[Middleware] = (),
) -> Callable[..., Any] | None:
    """Callable for a run-list entry, ``None`` when the entry is skipped.

    Strings name a handler on the resource and are skipped when no resource
    is configured. The callable is wrapped in middleware, outermost first.
    """
    if isinstance(entry, str):
        if resource is None:
            return None
        try:
            handler = resource[entry]
        except KeyError:
            msg = f"resource has no handler named {entry!r}"
            raise MissingResourceHandler(msg) from None
    elif callable(entry):
        handler = entry
    else:
        return None
    return reduce(lambda h, m: m(h), reversed(middleware), handler)


def invoke(
    run_list: Iterable[Handler | None],
    args: Sequence[Any] = (),
    *,
    resource: Resource | None = None,
    middleware: Sequence[Middleware] = (),
) -> Outcome:
    """Call each handler with args in order until one stops the walk."""
    for entry in run_list:
        if isinstance(entry, list):
            if invoke(entry, args, resource=resource, middleware=middleware) is STOP:
                return STOP
            continue
        handler = resolve(entry, resource, middleware)
        if handler is None:
            continue
        result = handler(*args)
        if inspect.iscoroutine(result):
            result.close()
            msg = f"{handler!r} is a coroutine function; configure asynchronous=True"
            raise DispatchModeError(msg)
        if outcome(result) is STOP:
            return STOP
    return CONTINUE


async def ainvoke(
    run_list: Iterable[Handler | None],
    args: Sequence[Any] = (),
    *,
    resource: Resource | None = None,
    middleware: Sequence[Middleware] = (),
) -> Outcome:
    """Await each handler with args in series until one stops the series.

    Plain callables are accepted alongside coroutine functions. Exceptions
    end the series and propagate.
    """
    for entry in flatten(run_list):
        handler = resolve(entry, resource, middleware)
        if handler is None:
            continue
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        if outcome(result) is STOP:
            return STOP
    return CONTINUE


def run(
    run_list: Iterable[Handler | None],
    route: Route,
    args: Sequence[Any] | None = None,
    *,
    resource: Resource | None = None,
    middleware: Sequence[Middleware] = (),
) -> Outcome:
    """Invoke run_list with current_route set to route.

    Handlers receive the route's captures unless args is given.
    """
    token = current_route.set(route)
    try:
        return invoke(
            run_list,
            route.captures if args is None else args,
            resource=resource,
            middleware=middleware,
        )
    finally:
        current_route.reset(token)


async def arun(
    run_list: Iterable[Handler | None],
    route: Route,
    args: Sequence[Any] | None = None,
    *,
    resource: Resource | None = None,
    middleware: Sequence[Middleware] = (),
) -> Outcome:
    """Asynchronous counterpart of run."""
    token = current_route.set(route)
    try:
        return await ainvoke(
            run_list,
            route.captures if args is None else args,
            resource=resource,
            middleware=middleware,
        )
    finally:
        current_route.reset(token)
