import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, AsyncIterator

from toolpilot.tracer.exporter import YAMLExporter
from toolpilot.tracer.span import Span, SpanKind

logger = logging.getLogger(__name__)

_active_tracer: ContextVar['Tracer | None'] = ContextVar("toolpilot_tracer", default=None)
_current_span: ContextVar[Span | None] = ContextVar("toolpilot_span", default=None)


def get_active_tracer() -> 'Tracer | None':
    return _active_tracer.get()


def get_current_span() -> Span | None:
    """The innermost open span of the running task, if tracing is on."""
    return _current_span.get()


class Tracer:
    """Builds the span tree of each request and hands finished trees to an exporter.

    Spans nest through a ``ContextVar``, so concurrently running steps each
    see their own current span while sharing the same parent.
    """

    def __init__(self, exporter: YAMLExporter | None = None):
        self.exporter = exporter
        self.task_span: Span | None = None

    def activate(self) -> Token:
        return _active_tracer.set(self)

    @staticmethod
    def deactivate(token: Token) -> None:
        _active_tracer.reset(token)

    @asynccontextmanager
    async def span(self, kind: SpanKind, name: str, **attributes: Any) -> AsyncIterator[Span]:
        """Open a span under the current one for the duration of the block."""
        parent = _current_span.get()
        span = parent.child(kind, name) if parent is not None else Span(kind, name)
        span.attributes.update(attributes)
        if kind == SpanKind.TASK and parent is None:
            self.task_span = span
        token = _current_span.set(span)
        try:
            yield span
        except Exception as e:
            span.finish(e)
            raise
        finally:
            span.finish()
            _current_span.reset(token)

    def export(self) -> Path | None:
        if self.exporter is None:
            logger.debug("No trace exporter configured")
            return None
        if self.task_span is None:
            logger.warning("No task span recorded, nothing to export")
            return None
        return self.exporter.export(self.task_span)
