import logging
from pathlib import Path

import yaml

from toolpilot.tracer.span import Span

logger = logging.getLogger(__name__)


class YAMLExporter:
    """Writes each task trace to its own YAML file in *output_dir*."""

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, span: Span) -> Path:
        stamp = span.started.strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"trace_{stamp}_{span.span_id}.yaml"

    def export(self, span: Span, filename: str | None = None) -> Path:
        path = self.output_dir / filename if filename else self.path_for(span)
        path.write_text(
            yaml.safe_dump(span.to_dict(), allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        logger.info(f"Trace written to {path}")
        return path
