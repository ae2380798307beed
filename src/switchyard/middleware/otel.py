"""OpenTelemetry tracing and metrics middleware.

Creates a span and records metrics for every handler a dispatch invokes.

Install with: pip install "switchyard[otel]"
"""

from __future__ import annotations

import functools
import inspect
import time
from contextlib import ExitStack, contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from opentelemetry.trace import Span

    from switchyard.invoke import Middleware

try:
    from opentelemetry import metrics, trace
    from opentelemetry.trace import SpanKind, TracerProvider
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: pip install 'switchyard[otel]'"
    )
    raise ImportError(msg) from e

from switchyard.invoke import current_route, outcome

_DURATION_BUCKETS = (
    0.0001,
    0.0005,
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Middleware:
    """Create OpenTelemetry tracing and metrics middleware.

    Each invoked handler runs inside an INTERNAL span named after the
    dispatched route (``"GET /users/42"``), or after the handler when invoked
    outside a dispatch. Exceptions are recorded on the span and mark it as
    failed; a handler stopping the chain sets ``dispatch.outcome`` to
    ``stop``. Only depends on ``opentelemetry-api``; users bring their own SDK
    and exporters.

    Metrics emitted:
        - ``dispatch.handler.duration`` (histogram, seconds)
        - ``dispatch.handler.active`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Middleware function that wraps handlers with tracing and metrics.

    Example:
        router.use(otel())
    """
    tracer = trace.get_tracer(
        "switchyard",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "switchyard",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "dispatch.handler.duration",
        unit="s",
        description="Duration of dispatched handler invocations.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_counter = meter.create_up_down_counter(
        "dispatch.handler.active",
        unit="{handler}",
        description="Number of handler invocations in progress.",
    )

    @contextmanager
    def instrument(name: str) -> Iterator[Span]:
        route = current_route.get(None)

        attributes: dict[str, str] = {"code.function": name}
        metric_attrs: dict[str, str] = {"code.function": name}
        if route is not None:
            attributes["dispatch.method"] = route.method
            attributes["dispatch.path"] = route.path
            metric_attrs["dispatch.method"] = route.method
            for i, capture in enumerate(route.captures):
                if capture is not None:
                    attributes[f"dispatch.capture.{i}"] = capture
        span_name = f"{route.method} {route.path}" if route is not None else name

        active_counter.add(1, metric_attrs)
        start = time.perf_counter()
        with tracer.start_as_current_span(
            span_name,
            kind=SpanKind.INTERNAL,
            attributes=attributes,
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            try:
                yield span
            finally:
                active_counter.add(-1, metric_attrs)
                duration_histogram.record(time.perf_counter() - start, metric_attrs)

    def middleware(handler: Callable[..., Any]) -> Callable[..., Any]:
        name = getattr(handler, "__qualname__", repr(handler))

        if inspect.iscoroutinefunction(handler):

            @functools.wraps(handler)
            async def traced_coroutine(*args: Any) -> Any:
                with instrument(name) as span:
                    result = await handler(*args)
                    span.set_attribute("dispatch.outcome", outcome(result).value)
                    return result

            return traced_coroutine

        async def settle(
            awaitable: Awaitable[Any], stack: ExitStack, span: Span
        ) -> Any:
            with stack:
                result = await awaitable
                span.set_attribute("dispatch.outcome", outcome(result).value)
                return result

        @functools.wraps(handler)
        def traced(*args: Any) -> Any:
            with ExitStack() as stack:
                span = stack.enter_context(instrument(name))
                result = handler(*args)
                if inspect.isawaitable(result):
                    # span stays open until the async series awaits result
                    return settle(result, stack.pop_all(), span)
                span.set_attribute("dispatch.outcome", outcome(result).value)
                return result

        return traced

    return middleware
