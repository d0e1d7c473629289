from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO

from .expressions import expression_emoji
from .frame_extractor import FaceMetrics
from .session import SessionFaceSummary

PROGRESS_CONFIDENCE = 0.7  # only "significant" frames are echoed


@dataclass
class Dashboard:
    verbose: bool = False
    stream: Optional[TextIO] = None

    @property
    def out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def lines(self, metrics: FaceMetrics) -> List[str]:
        expression = metrics.dominant_expression
        return [
            f"🎭 Expression: {expression} ({expression_emoji(expression)})",
            f"👁️ Eye Contact: {'✅' if metrics.eye_contact else '❌'}",
            f"🎯 Confidence: {round(metrics.confidence * 100)}%",
        ]

    def render(self, metrics: FaceMetrics) -> bool:
        """Write the frame's progress line(s). Returns False when skipped."""
        if metrics.confidence <= PROGRESS_CONFIDENCE:
            return False
        lines = self.lines(metrics)
        if self.verbose:
            lines.append(
                f"Head: x={metrics.head_position.x:+.2f} y={metrics.head_position.y:+.2f}"
            )
            lines.append("-" * 40)
            self.out.write("\n".join(lines) + "\n")
        else:
            self.out.write("\r" + " | ".join(lines))
        self.out.flush()
        return True

    def render_summary(self, summary: SessionFaceSummary) -> None:
        out = ["", "Visual Analysis", "=" * 40]
        for name, value in summary.report().items():
            out.append(f"{name}: {value}")
        if not summary.is_empty:
            out.append(f"Frames analysed: {summary.frame_count}")
            for label, count in summary.dominant_expressions.items():
                out.append(f"  {expression_emoji(label)} {label}: {count}")
        self.out.write("\n".join(out) + "\n")
        self.out.flush()
