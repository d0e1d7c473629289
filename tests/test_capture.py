"""Tests for the capture loop: pacing, sequencing, release, stale results."""

import asyncio
import threading
import time

import pytest

from face_metrics import CameraAccessError, FrameMetricsExtractor, ModelLoader, ModelStage
from face_metrics import capture as capture_module
from face_metrics.capture import CaptureLoop, CaptureState, OpenCVCamera


class FakeSource:
    def __init__(self, frames, frame_size=(640.0, 480.0)):
        self.frames = list(frames)
        self.frame_size = frame_size
        self.released = 0

    def read(self):
        if self.released or not self.frames:
            return None
        return self.frames.pop(0)

    def release(self):
        self.released += 1


class EndlessSource(FakeSource):
    def read(self):
        return None if self.released else "frame"


class SlowSource:
    """Blocks its worker thread inside read() and notes any release during it."""

    frame_size = (640.0, 480.0)

    def __init__(self, delay=0.2):
        self.delay = delay
        self.read_started = threading.Event()
        self.reading = False
        self.released_during_read = False
        self.released = 0

    def read(self):
        self.reading = True
        self.read_started.set()
        time.sleep(self.delay)
        self.reading = False
        return "frame"

    def release(self):
        if self.reading:
            self.released_during_read = True
        self.released += 1


class RecordingDetector:
    """Returns one detection per call and tracks overlap between calls."""

    def __init__(self, detection, delay=0.0):
        self.detection = detection
        self.delay = delay
        self.call_times = []
        self.active = 0
        self.max_active = 0

    async def detect_faces(self, frame, options):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.call_times.append(time.monotonic())
        try:
            await asyncio.sleep(self.delay)
            return [self.detection]
        finally:
            self.active -= 1


class GatedDetector:
    """Blocks inside detect_faces until ``release`` is set."""

    def __init__(self, detection):
        self.detection = detection
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def detect_faces(self, frame, options):
        self.entered.set()
        await self.release.wait()
        return [self.detection]


def test_processes_frames_sequentially_and_releases(make_detection):
    async def scenario():
        source = FakeSource(["f1", "f2", "f3"])
        detector = RecordingDetector(make_detection(), delay=0.01)
        received = []
        loop = CaptureLoop(lambda: source, FrameMetricsExtractor(detector),
                           on_metrics=received.append, max_fps=200)
        assert await loop.start() is True
        await loop.wait()
        return loop, source, detector, received

    loop, source, detector, received = asyncio.run(scenario())
    assert len(received) == 3
    assert detector.max_active == 1
    assert loop.aggregator.summary().frame_count == 3
    assert source.released == 1
    assert loop.state.is_streaming is False


def test_rate_limited_to_max_fps(make_detection):
    async def scenario():
        detector = RecordingDetector(make_detection())
        loop = CaptureLoop(lambda: FakeSource(["a", "b", "c", "d"]),
                           FrameMetricsExtractor(detector), max_fps=10)
        await loop.start()
        await loop.wait()
        return detector.call_times

    times = asyncio.run(scenario())
    gaps = [b - a for a, b in zip(times, times[1:])]
    assert len(gaps) == 3
    assert all(gap >= 0.09 for gap in gaps)


def test_result_in_flight_at_stop_is_dropped(make_detection):
    async def scenario():
        source = EndlessSource([])
        detector = GatedDetector(make_detection())
        received = []
        loop = CaptureLoop(lambda: source, FrameMetricsExtractor(detector),
                           on_metrics=received.append, max_fps=100)
        await loop.start()
        await asyncio.wait_for(detector.entered.wait(), timeout=2)
        await loop.stop()
        detector.release.set()
        await asyncio.sleep(0.05)
        return loop, source, received

    loop, source, received = asyncio.run(scenario())
    assert received == []
    assert loop.aggregator.summary().is_empty
    assert source.released == 1
    assert loop.state.is_streaming is False


def test_stop_waits_for_running_read_before_release(make_detection):
    async def scenario():
        source = SlowSource()
        received = []
        loop = CaptureLoop(lambda: source,
                           FrameMetricsExtractor(RecordingDetector(make_detection())),
                           on_metrics=received.append, max_fps=100)
        await loop.start()
        assert await asyncio.to_thread(source.read_started.wait, 2)
        await loop.stop()
        return source, received

    source, received = asyncio.run(scenario())
    assert source.released == 1
    assert source.released_during_read is False
    assert source.reading is False
    assert received == []


def test_wait_timeout_leaves_loop_running(make_detection):
    async def scenario():
        source = EndlessSource([])
        loop = CaptureLoop(lambda: source,
                           FrameMetricsExtractor(RecordingDetector(make_detection())),
                           max_fps=100)
        await loop.start()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(loop.wait(), timeout=0.05)
        still_streaming = loop.state.is_streaming
        await loop.stop()
        return source, still_streaming

    source, still_streaming = asyncio.run(scenario())
    assert still_streaming is True
    assert source.released == 1


def test_bad_frame_size_does_not_end_session(make_detection):
    async def scenario():
        source = FakeSource(["f1", "f2", "f3"], frame_size=(0.0, 480.0))
        extractor = FrameMetricsExtractor(RecordingDetector(make_detection()))
        loop = CaptureLoop(lambda: source, extractor, max_fps=200)
        await loop.start()
        await loop.wait()
        return loop, source, extractor

    loop, source, extractor = asyncio.run(scenario())
    assert extractor.frames_failed == 3
    assert loop.aggregator.summary().is_empty
    assert source.released == 1


def test_camera_failure_degrades_gracefully(make_detection):
    def _no_camera():
        raise CameraAccessError("Unable to open camera 0.")

    async def scenario():
        loop = CaptureLoop(_no_camera, FrameMetricsExtractor(RecordingDetector(make_detection())))
        started = await loop.start()
        await loop.stop()
        return loop, started

    loop, started = asyncio.run(scenario())
    assert started is False
    assert "Unable to open camera" in loop.error
    assert loop.state.is_streaming is False


def test_context_manager_releases_on_error(make_detection):
    source = EndlessSource([])

    async def scenario():
        async with CaptureLoop(lambda: source,
                               FrameMetricsExtractor(RecordingDetector(make_detection())),
                               max_fps=100):
            raise RuntimeError("component torn down")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert source.released == 1


def test_callback_error_still_releases(make_detection):
    source = FakeSource(["f1", "f2"])

    def _explode(metrics):
        raise ValueError("ui callback failed")

    async def scenario():
        loop = CaptureLoop(lambda: source,
                           FrameMetricsExtractor(RecordingDetector(make_detection())),
                           on_metrics=_explode, max_fps=100)
        await loop.start()
        await loop.wait()

    with pytest.raises(ValueError):
        asyncio.run(scenario())
    assert source.released == 1


def test_waits_for_models_before_dispatch(make_detection):
    def _fail():
        raise OSError("missing weights")

    async def scenario():
        loader = ModelLoader([ModelStage("tiny_face_detector", _fail)])
        loader.load()
        detector = RecordingDetector(make_detection())
        loop = CaptureLoop(lambda: EndlessSource([]), FrameMetricsExtractor(detector),
                           max_fps=100, loader=loader)
        await loop.start()
        await asyncio.sleep(0.05)
        await loop.stop()
        return detector

    assert asyncio.run(scenario()).call_times == []


def test_toggle_restarts_with_new_generation(make_detection):
    async def scenario():
        sources = []

        def _factory():
            sources.append(EndlessSource([]))
            return sources[-1]

        loop = CaptureLoop(_factory, FrameMetricsExtractor(RecordingDetector(make_detection())),
                           max_fps=100)
        generations = []
        assert await loop.toggle() is True
        generations.append(loop.state.generation)
        assert await loop.toggle() is False
        assert await loop.toggle() is True
        generations.append(loop.state.generation)
        await loop.stop()
        return sources, generations

    sources, generations = asyncio.run(scenario())
    assert len(sources) == 2
    assert all(s.released == 1 for s in sources)
    assert generations[1] > generations[0]


def test_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        CaptureLoop(lambda: None, FrameMetricsExtractor(), max_fps=0)


def test_capture_state_defaults():
    state = CaptureState()
    assert state.last_processed_at is None
    assert state.is_streaming is False


class TestOpenCVCamera:
    class FakeCapture:
        opened = True

        def __init__(self, index):
            self.index = index
            self.props = {}
            self.released = False

        def isOpened(self):
            return self.opened

        def set(self, prop, value):
            self.props[prop] = value

        def get(self, prop):
            return self.props.get(prop, 0)

        def read(self):
            return True, "bgr-frame"

        def release(self):
            self.released = True

    def test_unavailable_camera_raises(self, monkeypatch):
        created = []

        class Closed(self.FakeCapture):
            opened = False

            def __init__(self, index):
                super().__init__(index)
                created.append(self)

        monkeypatch.setattr(capture_module.cv2, "VideoCapture", Closed)
        with pytest.raises(CameraAccessError):
            OpenCVCamera(0)
        assert created[0].released

    def test_read_and_release(self, monkeypatch):
        monkeypatch.setattr(capture_module.cv2, "VideoCapture", self.FakeCapture)
        with OpenCVCamera(1, width=320, height=240) as camera:
            assert camera.frame_size == (320.0, 240.0)
            assert camera.read() == "bgr-frame"
        assert camera.read() is None
        assert camera.frame_size is None

    def test_release_waits_for_running_read(self, monkeypatch):
        events = []

        class SlowCapture(self.FakeCapture):
            def read(self):
                events.append("read-start")
                time.sleep(0.1)
                events.append("read-end")
                return True, "bgr-frame"

            def release(self):
                events.append("release")
                super().release()

        monkeypatch.setattr(capture_module.cv2, "VideoCapture", SlowCapture)
        camera = OpenCVCamera(0)
        reader = threading.Thread(target=camera.read)
        reader.start()
        while not events:
            time.sleep(0.001)
        camera.release()
        reader.join()
        assert events == ["read-start", "read-end", "release"]
        assert camera.read() is None
