"""Decorators that run an ``async`` function inside a span.

Without an activated tracer the wrapped function is called directly.

Usage::

    @trace_task("run")
    async def run(self, request: str) -> TaskResult:
        ...

    @trace_step()                  # span named after the step_id argument
    async def _run_step(self, step_id: str, ...):
        ...
"""

import functools
import inspect
from typing import Any, Callable, TypeVar

from toolpilot.tracer.span import SpanKind
from toolpilot.tracer.tracer import get_active_tracer

F = TypeVar("F", bound=Callable[..., Any])


def traced(kind: SpanKind, name: str | None = None, *, name_arg: str | None = None,
           export: bool = False) -> Callable[[F], F]:
    """Wrap a coroutine function in a span of *kind*.

    The span is called *name*, or the function name; with *name_arg* the
    value of that argument is used when the call supplies one.  With
    *export* the tracer exports its task tree once the call returns.
    """

    def decorator(fn: F) -> F:
        signature = inspect.signature(fn) if name_arg else None

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_active_tracer()
            if tracer is None:
                return await fn(*args, **kwargs)

            label = name or fn.__name__
            if signature is not None:
                value = signature.bind_partial(*args, **kwargs).arguments.get(name_arg)
                if value is not None:
                    label = str(value)
            try:
                async with tracer.span(kind, label):
                    return await fn(*args, **kwargs)
            finally:
                if export:
                    tracer.export()

        return wrapper  # type: ignore[return-value]

    return decorator


def trace_task(name: str | None = None) -> Callable[[F], F]:
    """Root span of one request; the trace is exported when it closes."""
    return traced(SpanKind.TASK, name, export=True)


def trace_stage(kind: SpanKind, name: str | None = None) -> Callable[[F], F]:
    return traced(kind, name)


def trace_step(name: str | None = None, *, name_arg: str = "step_id") -> Callable[[F], F]:
    return traced(SpanKind.STEP, name, name_arg=name_arg)


def trace_llm(name: str) -> Callable[[F], F]:
    return traced(SpanKind.LLM_CALL, name)
