"""
Capture Loop
============
Drives the frame extractor from a live video source.

  - one detection pass at a time, never overlapping
  - at most ``max_fps`` passes per second, whatever the source frame rate
  - the source is owned exclusively while streaming and released on every
    exit path (stop, exhaustion, error, cancellation)
  - a result that comes back after ``stop()`` is dropped, never applied
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Tuple

import cv2

from .detection import ModelLoader
from .exceptions import CameraAccessError
from .frame_extractor import FaceMetrics, FrameMetricsExtractor
from .session import SessionMetricsAggregator

logger = logging.getLogger(__name__)

DEFAULT_MAX_FPS = 10.0


class VideoSource(Protocol):
    @property
    def frame_size(self) -> Optional[Tuple[float, float]]:
        ...

    def read(self) -> Optional[Any]:
        ...

    def release(self) -> None:
        ...


class OpenCVCamera:
    """Local webcam via ``cv2.VideoCapture``.

    ``read`` runs on a worker thread; ``release`` waits for a read in progress.
    """

    def __init__(
        self,
        camera_index: int = 0,
        width: int = 320,
        height: int = 240,
        fps: int = 15,
    ) -> None:
        cap = cv2.VideoCapture(camera_index)
        if not cap.isOpened():
            cap.release()
            raise CameraAccessError(f"Unable to open camera {camera_index}.")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        cap.set(cv2.CAP_PROP_FPS, fps)
        self._cap: Optional[cv2.VideoCapture] = cap
        self._lock = threading.Lock()
        self._requested_size = (float(width), float(height))

    @property
    def frame_size(self) -> Optional[Tuple[float, float]]:
        """Resolution the device actually delivers."""
        cap = self._cap
        if cap is None:
            return None
        w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        if w > 0 and h > 0:
            return float(w), float(h)
        return self._requested_size

    def read(self) -> Optional[Any]:
        with self._lock:
            if self._cap is None:
                return None
            success, frame = self._cap.read()
        return frame if success else None

    def release(self) -> None:
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None

    def __enter__(self) -> "OpenCVCamera":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


@dataclass
class CaptureState:
    """Explicit loop state; ``generation`` changes on every start/stop."""

    last_processed_at: Optional[float] = None
    is_streaming: bool = False
    generation: int = 0


class CaptureLoop:
    def __init__(
        self,
        source_factory: Callable[[], VideoSource],
        extractor: FrameMetricsExtractor,
        on_metrics: Optional[Callable[[FaceMetrics], None]] = None,
        max_fps: float = DEFAULT_MAX_FPS,
        loader: Optional[ModelLoader] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_fps <= 0:
            raise ValueError(f"max_fps must be positive, got {max_fps}")
        self._source_factory = source_factory
        self.extractor = extractor
        self.on_metrics = on_metrics
        self.frame_interval = 1.0 / max_fps
        self.loader = loader
        self._clock = clock

        self.state = CaptureState()
        self.aggregator = SessionMetricsAggregator()
        self.error: Optional[str] = None
        self._source: Optional[VideoSource] = None
        self._task: Optional[asyncio.Task] = None
        # read still running on a worker thread after its awaiter was cancelled
        self._pending_read: Optional[asyncio.Future] = None

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> bool:
        """Acquire the source and begin processing. False if it can't be opened."""
        if self.state.is_streaming:
            return True
        try:
            source = self._source_factory()
        except Exception as e:
            self.error = f"Failed to access camera: {e}"
            logger.error(self.error)
            return False

        self._source = source
        self.error = None
        self.state.is_streaming = True
        self.state.generation += 1
        self.state.last_processed_at = None
        self._task = asyncio.create_task(self._run(self.state.generation, source))
        logger.info("Capture started")
        return True

    async def stop(self) -> None:
        """Stop immediately; any in-flight result is discarded.

        The source is released only once no read is running against it.
        """
        was_streaming = self.state.is_streaming
        self.state.is_streaming = False
        self.state.generation += 1

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._drain_read()
        self._release()
        if was_streaming:
            logger.info("Capture stopped")

    async def toggle(self) -> bool:
        if self.state.is_streaming:
            await self.stop()
            return False
        return await self.start()

    async def wait(self) -> None:
        """Block until the loop ends on its own (source exhausted)."""
        task = self._task
        if task is None:
            return
        try:
            # cancelling the waiter must not cancel the loop itself
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def __aenter__(self) -> "CaptureLoop":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # ── Processing ───────────────────────────────────────────────

    def _is_current(self, generation: int) -> bool:
        return self.state.is_streaming and self.state.generation == generation

    def _release(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.release()

    async def _read_frame(self, source: VideoSource) -> Optional[Any]:
        pending = asyncio.ensure_future(asyncio.to_thread(source.read))
        self._pending_read = pending
        # shielded: on cancel the thread keeps running and _drain_read waits for it
        frame = await asyncio.shield(pending)
        self._pending_read = None
        return frame

    async def _drain_read(self) -> None:
        pending, self._pending_read = self._pending_read, None
        if pending is None:
            return
        if not pending.done():
            await asyncio.wait([pending])
        if not pending.cancelled() and pending.exception() is not None:
            logger.debug(f"Discarding failed read: {pending.exception()}")

    async def _run(self, generation: int, source: VideoSource) -> None:
        try:
            while self._is_current(generation):
                now = self._clock()
                last = self.state.last_processed_at
                if last is not None and now - last < self.frame_interval:
                    await asyncio.sleep(self.frame_interval - (now - last))
                    continue
                if self.loader is not None and not self.loader.is_ready:
                    await asyncio.sleep(self.frame_interval)
                    continue
                self.state.last_processed_at = now

                frame = await self._read_frame(source)
                if frame is None:
                    logger.info("Video source exhausted")
                    break

                metrics = await self.extractor.process_frame(frame, source.frame_size)
                if not self._is_current(generation):
                    logger.debug("Dropping detection result that arrived after stop")
                    break
                if metrics is None:
                    continue

                self.aggregator.add(metrics)
                if self.on_metrics is not None:
                    self.on_metrics(metrics)
        finally:
            if self.state.generation == generation:
                self.state.is_streaming = False
                await self._drain_read()
                self._release()
