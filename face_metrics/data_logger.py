from __future__ import annotations

import csv
import pathlib
import time
from typing import Callable, Optional, TextIO, Tuple

from .expressions import EXPRESSION_LABELS
from .frame_extractor import FaceMetrics

METRIC_FIELDS: Tuple[str, ...] = (
    "confidence",
    "eye_contact",
    "head_x",
    "head_y",
    "dominant_expression",
    *EXPRESSION_LABELS,
)
CSV_HEADER: Tuple[str, ...] = ("timestamp", *METRIC_FIELDS)


def metrics_row(metrics: FaceMetrics) -> Tuple[object, ...]:
    """One frame as a row in ``METRIC_FIELDS`` order."""
    return (
        round(metrics.confidence, 4),
        int(metrics.eye_contact),
        round(metrics.head_position.x, 4),
        round(metrics.head_position.y, 4),
        metrics.dominant_expression,
        *(round(metrics.expressions[label], 4) for label in EXPRESSION_LABELS),
    )


class MetricsLogger:
    """CSV sink for accepted frames.

    The file is only created once the first frame arrives, so a session
    with no accepted frames leaves nothing behind.  In append mode the
    header is written only when the file is new or empty.
    """

    def __init__(
        self,
        output_path: pathlib.Path,
        append: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.output_path = output_path
        self.append = append
        self.rows_written = 0
        self._clock = clock
        self._file: Optional[TextIO] = None
        self._writer = None

    def _open(self) -> None:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        fresh = (
            not self.append
            or not self.output_path.exists()
            or self.output_path.stat().st_size == 0
        )
        self._file = self.output_path.open("a" if self.append else "w", newline="")
        self._writer = csv.writer(self._file)
        if fresh:
            self._writer.writerow(CSV_HEADER)

    def log(self, metrics: FaceMetrics) -> None:
        if self._file is None:
            self._open()
        self._writer.writerow((round(self._clock(), 3), *metrics_row(metrics)))
        self._file.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def __enter__(self) -> "MetricsLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
