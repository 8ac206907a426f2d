import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator


class SpanKind(str, Enum):
    """Level of a span in the trace of one request.

    A ``TASK`` holds the ``PLAN``, ``EXECUTION`` and ``SUMMARY`` stages.
    Tool ``STEP`` spans sit under the execution stage and ``LLM_CALL`` spans
    under whichever stage talked to the model.
    """
    TASK = "task"
    PLAN = "plan"
    EXECUTION = "execution"
    SUMMARY = "summary"
    STEP = "step"
    LLM_CALL = "llm_call"


@dataclass
class Span:
    kind: SpanKind
    name: str
    parent: 'Span | None' = field(default=None, repr=False)
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started: datetime = field(default_factory=datetime.now)
    attributes: dict[str, Any] = field(default_factory=dict)
    children: list['Span'] = field(default_factory=list)
    duration_ms: float | None = None
    error: str | None = None
    _clock: float = field(default_factory=time.perf_counter, repr=False)

    def child(self, kind: SpanKind, name: str) -> 'Span':
        span = Span(kind, name, parent=self)
        self.children.append(span)
        return span

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def finish(self, error: BaseException | None = None) -> None:
        """Stop the clock; the first call wins, a later error is still recorded."""
        if self.duration_ms is None:
            self.duration_ms = (time.perf_counter() - self._clock) * 1000
        if error is not None and self.error is None:
            self.error = str(error) or type(error).__name__

    @property
    def finished(self) -> bool:
        return self.duration_ms is not None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        return "ok" if self.finished else "open"

    def walk(self) -> Iterator['Span']:
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "span_id": self.span_id,
            "started": self.started.isoformat(),
            "status": self.status,
        }
        if self.duration_ms is not None:
            data["duration_ms"] = round(self.duration_ms, 2)
        if self.error is not None:
            data["error"] = self.error
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data
