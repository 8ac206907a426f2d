from toolpilot.tracer.decorators import trace_llm, trace_stage, trace_step, trace_task, traced
from toolpilot.tracer.exporter import YAMLExporter
from toolpilot.tracer.span import Span, SpanKind
from toolpilot.tracer.tracer import Tracer, get_active_tracer, get_current_span

__all__ = [
    "Tracer",
    "YAMLExporter",
    "Span",
    "SpanKind",
    "get_active_tracer",
    "get_current_span",
    "traced",
    "trace_task",
    "trace_stage",
    "trace_step",
    "trace_llm",
]
