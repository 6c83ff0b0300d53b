"""Tests for detector output adaptation and request gating."""

import threading
from types import SimpleNamespace

import pytest

from posepuppet.core import NUM_LANDMARKS
from posepuppet.pose.detector import DetectionGate, fit_canvas_size, landmarks_from_detector


class TestFitCanvasSize:

    def test_wide_video_scaled_down(self):
        assert fit_canvas_size(1920, 1080) == (1280, 720)

    def test_small_video_kept(self):
        assert fit_canvas_size(640, 480) == (640, 480)

    def test_custom_max_width(self):
        assert fit_canvas_size(1000, 500, max_width=800) == (800, 400)

    def test_invalid(self):
        with pytest.raises(ValueError):
            fit_canvas_size(0, 480)


class TestLandmarksFromDetector:

    def test_no_detection(self):
        assert landmarks_from_detector(None, (640, 480)) is None
        assert landmarks_from_detector([], (640, 480)) is None

    def test_scaled_to_canvas(self):
        skeleton = landmarks_from_detector([(0.5, 0.25, 0.9)], (1920, 1080), (1280, 720))
        assert len(skeleton) == NUM_LANDMARKS
        lm = skeleton[0]
        assert (lm.x, lm.y, lm.visibility) == pytest.approx((640.0, 180.0, 0.9))
        assert skeleton[1] is None

    def test_sample_formats(self):
        samples = [
            {"x": 0.5, "y": 0.5, "visibility": 0.7},
            SimpleNamespace(x=0.25, y=0.75, visibility=0.6),
            (0.1, 0.2),
            None,
        ]
        skeleton = landmarks_from_detector(samples, (640, 480))
        assert (skeleton[0].x, skeleton[0].y, skeleton[0].visibility) == pytest.approx((320.0, 240.0, 0.7))
        assert (skeleton[1].x, skeleton[1].y, skeleton[1].visibility) == pytest.approx((160.0, 360.0, 0.6))
        assert skeleton[2].visibility == 1.0
        assert skeleton[3] is None

    def test_visibility_clamped(self):
        skeleton = landmarks_from_detector([(0.5, 0.5, 1.7), (0.5, 0.5, -0.2)], (640, 480))
        assert skeleton[0].visibility == 1.0
        assert skeleton[1].visibility == 0.0

    def test_too_many_samples(self):
        with pytest.raises(ValueError):
            landmarks_from_detector([(0.5, 0.5)] * (NUM_LANDMARKS + 1), (640, 480))

    def test_malformed_sample(self):
        with pytest.raises(ValueError):
            landmarks_from_detector([(0.5,)], (640, 480))
        with pytest.raises(ValueError):
            landmarks_from_detector([{"x": 0.5}], (640, 480))


class TestDetectionGate:

    def test_single_in_flight(self):
        gate = DetectionGate()
        assert gate.try_begin()
        assert gate.pending
        assert not gate.try_begin()
        assert gate.dropped == 1
        gate.complete()
        assert not gate.pending
        assert gate.try_begin()

    def test_concurrent_ticks_admit_one(self):
        gate = DetectionGate()
        results = []
        barrier = threading.Barrier(8)

        def tick():
            barrier.wait()
            results.append(gate.try_begin())

        threads = [threading.Thread(target=tick) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert gate.dropped == 7
