from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import pathlib
from typing import Callable, List, Optional

from .capture import CaptureLoop, OpenCVCamera
from .config import Settings
from .dashboard import Dashboard
from .data_logger import MetricsLogger
from .detection import FaceDetector, ModelLoader, RawDetection
from .frame_extractor import FaceMetrics, FrameMetricsExtractor
from .landmark_geometry import ReferenceFrame
from .session import SessionFaceSummary, SessionMetricsAggregator

logger = logging.getLogger(__name__)


# ── Replay recorded detections ──────────────────────────────────────
def replay(
    detections_path: pathlib.Path,
    log_path: Optional[pathlib.Path],
    dashboard: Dashboard,
    settings: Settings,
) -> SessionFaceSummary:
    extractor = FrameMetricsExtractor(config=settings.extractor_config())
    aggregator = SessionMetricsAggregator()
    metrics_logger = MetricsLogger(log_path) if log_path is not None else None

    try:
        with detections_path.open() as fh:
            for line_no, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                    detections = [RawDetection.from_dict(d) for d in record.get("detections", [])]
                    frame = None
                    if record.get("frame_width") and record.get("frame_height"):
                        frame = ReferenceFrame(record["frame_width"], record["frame_height"])
                except (KeyError, TypeError, ValueError) as e:
                    extractor.frames_seen += 1
                    extractor.frames_failed += 1
                    logger.warning(f"Skipping malformed record on line {line_no}: {e}")
                    continue

                metrics = extractor.record(detections, frame)
                if metrics is None:
                    continue
                aggregator.add(metrics)
                dashboard.render(metrics)
                if metrics_logger is not None:
                    metrics_logger.log(metrics)
    finally:
        if metrics_logger is not None:
            metrics_logger.close()

    logger.info(f"Replay finished: {extractor.stats()}")
    return aggregator.summary()


# ── Live camera capture ─────────────────────────────────────────────
def load_detector(spec: str) -> FaceDetector:
    """Instantiate a detector from a ``package.module:factory`` string."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Detector must be given as 'module:factory', got '{spec}'")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory()


async def run_live(
    detector: FaceDetector,
    settings: Settings,
    dashboard: Dashboard,
    log_path: Optional[pathlib.Path] = None,
    duration: Optional[float] = None,
    source_factory: Optional[Callable[[], OpenCVCamera]] = None,
) -> SessionFaceSummary:
    loader = None
    stages = getattr(detector, "model_stages", None)
    if callable(stages):
        loader = ModelLoader(list(stages()))
        if not loader.load():
            # face metrics are off for this session; nothing else depends on them
            return SessionFaceSummary.empty()

    metrics_logger = MetricsLogger(log_path) if log_path is not None else None

    def _on_metrics(metrics: FaceMetrics) -> None:
        dashboard.render(metrics)
        if metrics_logger is not None:
            metrics_logger.log(metrics)

    if source_factory is None:
        def source_factory() -> OpenCVCamera:
            return OpenCVCamera(
                settings.camera_index,
                settings.capture_width,
                settings.capture_height,
                settings.capture_fps,
            )

    capture = CaptureLoop(
        source_factory,
        FrameMetricsExtractor(detector, settings.extractor_config()),
        on_metrics=_on_metrics,
        max_fps=settings.max_fps,
        loader=loader,
    )
    try:
        async with capture:
            if capture.error:
                logger.error(capture.error)
                return SessionFaceSummary.empty()
            try:
                await asyncio.wait_for(capture.wait(), timeout=duration)
            except asyncio.TimeoutError:
                pass
    finally:
        if metrics_logger is not None:
            metrics_logger.close()
    return capture.aggregator.summary()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Interview face metrics: eye contact, head position, confidence"
    )
    parser.add_argument(
        "--log-path",
        type=pathlib.Path,
        default=None,
        help="CSV file receiving one row per accepted frame",
    )
    parser.add_argument("--verbose", action="store_true", help="Print every accepted frame")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    parser.add_argument("--env-file", type=pathlib.Path, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    replay_p = sub.add_parser("replay", help="Summarise recorded detections (JSON lines)")
    replay_p.add_argument("detections", type=pathlib.Path)

    live_p = sub.add_parser("live", help="Analyse the local camera")
    live_p.add_argument("--detector", required=True, help="module:factory returning a detector")
    live_p.add_argument("--duration", type=float, default=None, help="Seconds to run")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    settings = Settings.from_env(args.env_file)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    dashboard = Dashboard(verbose=args.verbose)

    if args.command == "replay":
        summary = replay(args.detections, args.log_path, dashboard, settings)
    else:
        detector = load_detector(args.detector)
        try:
            summary = asyncio.run(
                run_live(detector, settings, dashboard, args.log_path, args.duration)
            )
        except KeyboardInterrupt:
            logger.info("Interrupted")
            return

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        dashboard.render_summary(summary)


if __name__ == "__main__":
    main()
