"""Tests for the landmark layout, errors, logging and timing helpers."""

import io
import logging

import numpy as np
import pytest

from posepuppet.core import (
    CRITICAL_POINTS,
    FrameTimer,
    IndexOutOfRange,
    Landmark,
    NUM_LANDMARKS,
    POSE_CONNECTIONS,
    PoseLandmark,
    RetargetError,
    as_skeleton,
    average_visibility,
    check_index,
    compute_bone_lengths,
    get_landmark_name,
    get_logger,
)
from posepuppet.core.logging import ColoredFormatter, setup_logging


class TestLandmarkLayout:

    def test_counts(self):
        assert NUM_LANDMARKS == 33
        assert len(PoseLandmark) == 33
        assert len(POSE_CONNECTIONS) == 31
        assert len(CRITICAL_POINTS) == 13

    def test_connections_valid(self):
        for a, b in POSE_CONNECTIONS:
            assert 0 <= a < NUM_LANDMARKS and 0 <= b < NUM_LANDMARKS

    def test_names(self):
        assert get_landmark_name(0) == "nose"
        assert get_landmark_name(PoseLandmark.RIGHT_FOOT_INDEX) == "right_foot_index"


class TestCheckIndex:

    @pytest.mark.parametrize("index", [0, 32, np.int64(5)])
    def test_valid(self, index):
        assert check_index(index) == int(index)

    @pytest.mark.parametrize("index", [-1, 33, True, "3", 2.0])
    def test_invalid(self, index):
        with pytest.raises(IndexOutOfRange):
            check_index(index)

    def test_error_hierarchy(self):
        with pytest.raises(IndexError):
            check_index(99)
        with pytest.raises(RetargetError):
            check_index(99)


class TestSkeletonHelpers:

    def test_as_skeleton_pads_and_copies(self):
        lm = Landmark(1.0, 2.0)
        skeleton = as_skeleton([lm])
        assert len(skeleton) == NUM_LANDMARKS
        assert skeleton[0] == lm and skeleton[0] is not lm

    def test_as_skeleton_too_long(self):
        with pytest.raises(ValueError):
            as_skeleton([None] * 34)

    def test_average_visibility(self):
        assert average_visibility([Landmark(0, 0, 0.2), None, Landmark(0, 0, 0.8)]) == pytest.approx(0.5)
        assert average_visibility([None, None]) == 0.0

    def test_bone_lengths(self):
        skeleton = as_skeleton([])
        skeleton[11] = Landmark(0.0, 0.0)
        skeleton[13] = Landmark(3.0, 4.0)
        lengths = compute_bone_lengths(skeleton)
        assert lengths[POSE_CONNECTIONS.index((11, 13))] == pytest.approx(5.0)
        assert sum(1 for b in lengths if b is not None) == 1


class TestLogging:

    def test_namespaced(self):
        assert get_logger("motion.mirror").name == "posepuppet.motion.mirror"

    def test_colored_formatter_leaves_record_intact(self):
        record = logging.LogRecord("posepuppet.test", logging.INFO, __file__, 1, "hello", None, None)
        output = ColoredFormatter("%(levelname)s %(name)s %(message)s").format(record)
        assert "hello" in output
        assert "\033[" in output
        assert record.levelname == "INFO"
        assert record.name == "posepuppet.test"

    def test_setup_replaces_handlers(self):
        first, second = io.StringIO(), io.StringIO()
        try:
            setup_logging("INFO", stream=first)
            setup_logging("DEBUG", stream=second)
            get_logger("test").debug("frame detail")
        finally:
            setup_logging("INFO")
        assert first.getvalue() == ""
        assert "frame detail" in second.getvalue()

    def test_level_filters_console(self):
        stream = io.StringIO()
        try:
            setup_logging("WARNING", stream=stream)
            get_logger("test").info("quiet")
            get_logger("test").warning("loud")
        finally:
            setup_logging("INFO")
        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("CHATTY")

    def test_file_log_uncolored(self, tmp_path):
        try:
            setup_logging("INFO", log_file="run", log_dir=str(tmp_path), stream=io.StringIO())
            get_logger("test").info("to disk")
        finally:
            setup_logging("INFO")
        files = list(tmp_path.glob("run_*.log"))
        assert len(files) == 1
        text = files[0].read_text()
        assert "to disk" in text
        assert "\033[" not in text


class TestFrameTimer:

    def test_stop_without_start(self):
        assert FrameTimer().stop() == 0.0

    def test_measures(self):
        timer = FrameTimer(window_size=2)
        for _ in range(3):
            timer.start()
            assert timer.is_running
            timer.stop()
        assert timer.frame_count == 2
        assert timer.last_frame_time >= 0.0
        timer.reset()
        assert timer.frame_count == 0
        assert timer.fps == 0.0
