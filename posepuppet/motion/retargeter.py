"""
Puppet Retargeting - drive a fixed template skeleton from live landmarks.

Per frame:
1. Landmark filter (median + exponential smoothing + jump clamp)
2. Template lifecycle (automatic capture once the pose is stable)
3. Alignment to the template, when one exists and auto-align is on:
   similarity fits for the direct and mirrored hypotheses, mirror
   decision, transform smoothing, transform application
4. Bone-length constraints and occluded foot prediction

All session state lives on the PuppetRetargeter instance. Frames are
processed one at a time; user commands either run between frames on the
processing thread or are queued with submit() and applied at the start
of the next frame.
"""

import math
import queue
import threading
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

from posepuppet.core import Config, FrameTimer, get_logger
from posepuppet.core.errors import MissingTemplate, RetargetError
from posepuppet.core.landmarks import (
    CRITICAL_POINTS,
    BoneLengths,
    Landmark,
    Skeleton,
    as_skeleton,
    check_index,
    compute_bone_lengths,
    copy_skeleton,
    empty_skeleton,
    average_visibility,
    get_landmark_name,
)
from posepuppet.export.template_io import (
    load_template,
    save_template,
    template_from_record,
    template_to_record,
)
from posepuppet.pose.landmark_filter import LandmarkFilter
from posepuppet.pose.occlusion import OcclusionPredictor
from posepuppet.pose.trail import LandmarkTrail
from .bone_constraints import BoneConstraintSolver
from .mirror import MirrorDecision
from .similarity import (
    Point,
    Transform,
    apply_transform,
    centroid,
    estimate_similarity,
    match_error,
    mirror_points,
)
from .transform_smoother import TransformSmoother


class SessionState(Enum):
    """Template lifecycle."""
    NO_TEMPLATE = auto()      # Nothing detected yet
    ACCUMULATING = auto()     # Tracking visibility until the pose is stable
    TEMPLATE_READY = auto()   # Template frozen, alignment possible


@dataclass(frozen=True)
class RetargeterStatus:
    """Read-only snapshot for status displays."""
    state: SessionState
    template_ready: bool
    auto_align: bool
    manual_edit: bool
    manual_capture: bool
    mirrored: bool
    mirror_locked: bool
    mirror_forced: Optional[bool]
    paused: bool
    frames_processed: int
    stable_frames: int
    error_normal: Optional[float]
    error_mirrored: Optional[float]
    frame_time_ms: float
    fps: float


# Commands that may be queued with submit()
COMMANDS = frozenset({
    "capture_template_from_current",
    "begin_manual_point_capture",
    "set_manual_point",
    "set_next_manual_point",
    "finish_manual_capture",
    "cancel_manual_capture",
    "toggle_auto_align",
    "enter_manual_edit_mode",
    "exit_manual_edit_mode",
    "drag_point",
    "force_mirror",
    "reset_mirror_decision",
    "reset_all",
    "import_template",
    "load_template",
    "set_canvas_size",
    "select_trail_landmark",
})


class PuppetRetargeter:
    """
    Owns the retargeting session: filter history, template, bone lengths,
    running transform and mirror decision.
    """

    def __init__(self, config: Optional[Config] = None):
        self.logger = get_logger("motion.retargeter")
        self.config = config or Config()

        align_config = self.config.alignment
        template_config = self.config.template

        self._align_indices = [check_index(i) for i in align_config.get("align_indices", [11, 12, 23, 24, 25, 26, 27, 28])]
        self._fallback_indices = [check_index(i) for i in align_config.get("fallback_indices", [11, 12, 23, 24])]
        self._align_min_visibility = align_config.get("align_min_visibility", 0.3)
        self._min_align_points = int(align_config.get("min_align_points", 3))
        self._visibility_threshold = align_config.get("visibility_threshold", 0.35)
        self._min_scale = align_config.get("min_scale", 0.5)
        self._max_scale = align_config.get("max_scale", 2.0)
        self._min_spread = align_config.get("min_spread", 1e-6)

        self._auto_capture = template_config.get("auto_capture", True)
        self._stable_frames_threshold = int(template_config.get("stable_frames_threshold", 15))
        self._stable_visibility = template_config.get("stable_visibility", 0.6)
        self._auto_align_default = bool(template_config.get("auto_align", True))

        self._constraints_enabled = self.config.constraints.get("enabled", True)
        self._pick_radius = self.config.editing.get("pick_radius", 30.0)

        self._filter = LandmarkFilter(config=self.config)
        self._mirror = MirrorDecision(self.config)
        self._smoother = TransformSmoother(self.config)
        self._constraints = BoneConstraintSolver(self.config)
        self._occlusion = OcclusionPredictor(self.config)
        self._trail = LandmarkTrail(self.config)
        self._timer = FrameTimer()

        self._commands: "queue.Queue[Tuple[str, tuple, dict]]" = queue.Queue()
        self._frame_lock = threading.Lock()
        self._in_frame = False

        self._canvas_size: Optional[Tuple[float, float]] = None
        self._reset_session()

        self.logger.info(
            f"Initialized retargeter (align={self._align_indices}, "
            f"stable_frames={self._stable_frames_threshold})"
        )

    def _reset_session(self) -> None:
        self._state = SessionState.NO_TEMPLATE
        self._template: Optional[Skeleton] = None
        self._bone_lengths: Optional[BoneLengths] = None
        self._stable_frames = 0
        self._auto_align = self._auto_align_default
        self._manual_edit = False
        self._capture_points: Optional[Skeleton] = None
        self._capture_cursor = 0
        self._paused = False
        self._last_output: Optional[Skeleton] = None
        self._last_errors: Optional[Tuple[float, float]] = None
        self._mirror_center_x: Optional[float] = None
        self._frames_processed = 0
        self._landmark_count: Optional[int] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def template(self) -> Optional[Skeleton]:
        return copy_skeleton(self._template) if self._template is not None else None

    @property
    def bone_lengths(self) -> Optional[BoneLengths]:
        return list(self._bone_lengths) if self._bone_lengths is not None else None

    @property
    def transform(self) -> Optional[Transform]:
        current = self._smoother.current
        return current.copy() if current is not None else None

    @property
    def is_mirrored(self) -> bool:
        return self._mirror.is_mirrored

    @property
    def mirror_state(self):
        return self._mirror.state

    @property
    def auto_align_enabled(self) -> bool:
        return self._auto_align

    @property
    def manual_edit_mode(self) -> bool:
        return self._manual_edit

    @property
    def manual_capture_active(self) -> bool:
        return self._capture_points is not None

    @property
    def manual_capture_points(self) -> Optional[Skeleton]:
        if self._capture_points is None:
            return None
        return copy_skeleton(self._capture_points)

    @property
    def smoothed(self) -> Optional[Skeleton]:
        return self._filter.smoothed

    @property
    def last_output(self) -> Optional[Skeleton]:
        return copy_skeleton(self._last_output) if self._last_output is not None else None

    @property
    def trail(self) -> LandmarkTrail:
        return self._trail

    def snapshot(self) -> RetargeterStatus:
        """Current session status for external displays."""
        mirror = self._mirror.state
        errors = self._last_errors
        return RetargeterStatus(
            state=self._state,
            template_ready=self._template is not None,
            auto_align=self._auto_align,
            manual_edit=self._manual_edit,
            manual_capture=self._capture_points is not None,
            mirrored=mirror.current_decision,
            mirror_locked=mirror.locked,
            mirror_forced=mirror.forced,
            paused=self._paused,
            frames_processed=self._frames_processed,
            stable_frames=self._stable_frames,
            error_normal=errors[0] if errors else None,
            error_mirrored=errors[1] if errors else None,
            frame_time_ms=self._timer.last_frame_time * 1000.0,
            fps=self._timer.fps,
        )

    # =========================================================================
    # Frame processing
    # =========================================================================

    def process_frame(
        self,
        landmarks: Optional[Sequence[Optional[Landmark]]],
        source_paused: bool = False,
        landmark_count: Optional[int] = None
    ) -> Optional[Skeleton]:
        """
        Run the pipeline for one frame.

        Args:
            landmarks: Raw landmarks in display coordinates (up to 33 slots),
                       or None when nothing was detected this frame
            source_paused: True while the video source is paused; no state
                           advances and the previous output is returned
            landmark_count: Number of samples the detector reported, when
                            landmarks were already padded to 33 slots.
                            Defaults to len(landmarks). A change in count
                            means the detector re-initialized and the
                            filter history restarts from this frame.

        Returns:
            Final skeleton for the renderer, or None if nothing has been
            produced yet
        """
        if not self._frame_lock.acquire(blocking=False):
            raise RuntimeError("process_frame called while another frame is in progress")

        try:
            self._drain_commands()
            self._in_frame = True
            if not source_paused:
                self._timer.start()
            return self._process(landmarks, source_paused, landmark_count)
        finally:
            if self._timer.is_running:
                self._timer.stop()
            self._in_frame = False
            self._frame_lock.release()

    def _process(
        self,
        landmarks: Optional[Sequence[Optional[Landmark]]],
        source_paused: bool,
        landmark_count: Optional[int]
    ) -> Optional[Skeleton]:
        if source_paused:
            if not self._paused:
                self.logger.debug("Source paused, holding state")
            self._paused = True
            return self.last_output

        if self._paused:
            self._paused = False
            # Resumption can mean a different camera framing or subject
            self._smoother.reset()
            self.logger.info("Source resumed, running transform invalidated")

        if not landmarks or all(lm is None for lm in landmarks):
            return self.last_output

        if landmark_count is None:
            landmark_count = len(landmarks)
        if self._landmark_count is not None and landmark_count != self._landmark_count:
            self.logger.info(
                f"Landmark count changed ({self._landmark_count} -> {landmark_count}), restarting filter"
            )
            self._filter.reset()
        self._landmark_count = landmark_count

        skeleton = as_skeleton(landmarks)
        smoothed = self._filter.filter(skeleton)
        self._trail.update(smoothed)

        if self._state == SessionState.NO_TEMPLATE:
            self._state = SessionState.ACCUMULATING
            self.logger.info("First detection, accumulating for template capture")

        if self._state == SessionState.ACCUMULATING and self._capture_points is None:
            self._accumulate(smoothed)

        output = smoothed
        if self._auto_align and self._template is not None:
            output = self._align(smoothed)

        self._last_output = output
        self._frames_processed += 1
        return copy_skeleton(output)

    def _accumulate(self, smoothed: Skeleton) -> None:
        if not self._auto_capture:
            return

        avg_vis = average_visibility(smoothed)
        if avg_vis > self._stable_visibility:
            self._stable_frames += 1
        else:
            self._stable_frames = 0

        if self._stable_frames >= self._stable_frames_threshold:
            self._set_template(smoothed, reason=f"auto capture, avg visibility {avg_vis:.2f}")

    def _correspondences(
        self,
        smoothed: Skeleton
    ) -> Tuple[List[Optional[Point]], List[Optional[Point]]]:
        """Index-aligned live/template points used for the fit."""
        template = self._template

        src: List[Optional[Point]] = []
        dst: List[Optional[Point]] = []
        for i in self._align_indices:
            lm = smoothed[i]
            t = template[i]
            src.append((lm.x, lm.y) if lm is not None and lm.visibility >= self._align_min_visibility else None)
            dst.append((t.x, t.y) if t is not None else None)

        valid = sum(1 for a, b in zip(src, dst) if a is not None and b is not None)
        if valid >= self._min_align_points:
            return src, dst

        # Too few confident points: fall back to the torso, ignoring visibility
        src = [(smoothed[i].x, smoothed[i].y) if smoothed[i] is not None else None for i in self._fallback_indices]
        dst = [(template[i].x, template[i].y) if template[i] is not None else None for i in self._fallback_indices]
        return src, dst

    def _fit(self, src: Sequence[Optional[Point]], dst: Sequence[Optional[Point]]) -> Optional[Transform]:
        return estimate_similarity(
            src, dst,
            min_scale=self._min_scale,
            max_scale=self._max_scale,
            min_spread=self._min_spread,
        )

    def _align(self, smoothed: Skeleton) -> Skeleton:
        src, dst = self._correspondences(smoothed)

        center = centroid(src)
        if center is not None:
            self._mirror_center_x = center[0]

        fit_normal = self._fit(src, dst)
        fit_mirrored = self._fit(mirror_points(src, center[0]), dst) if center is not None else None

        if fit_normal is not None or fit_mirrored is not None:
            err_normal = math.inf
            err_mirrored = math.inf
            if fit_normal is not None:
                err_normal = match_error(
                    apply_transform(smoothed, fit_normal),
                    self._template, self._visibility_threshold,
                )
            if fit_mirrored is not None:
                err_mirrored = match_error(
                    apply_transform(smoothed, fit_mirrored, center[0]),
                    self._template, self._visibility_threshold,
                )
            self._last_errors = (err_normal, err_mirrored)
            self._mirror.update(err_normal, err_mirrored)
        elif self._mirror.forced is not None:
            self._mirror.update(math.inf, math.inf)

        mirrored = self._mirror.is_mirrored
        chosen = fit_mirrored if mirrored else fit_normal

        if chosen is not None:
            running = self._smoother.update(chosen)
        else:
            self.logger.debug("No transform this frame, keeping previous")
            running = self._smoother.current

        if running is None:
            return smoothed

        mirror_x = self._mirror_center_x if mirrored else None
        aligned = apply_transform(smoothed, running, mirror_x)

        if self._constraints_enabled and self._bone_lengths is not None:
            aligned = self._constraints.solve(aligned, self._bone_lengths)

        self._occlusion.predict(aligned)
        return aligned

    def _set_template(
        self,
        template: Sequence[Optional[Landmark]],
        bone_lengths: Optional[BoneLengths] = None,
        reason: str = ""
    ) -> None:
        self._template = as_skeleton(template)
        self._bone_lengths = list(bone_lengths) if bone_lengths is not None else compute_bone_lengths(self._template)
        self._state = SessionState.TEMPLATE_READY
        self._stable_frames = 0

        # A new template may have a different intrinsic orientation
        self._mirror.reset()
        self._smoother.reset()
        self._last_errors = None

        present = sum(1 for lm in self._template if lm is not None)
        self.logger.info(f"Template set ({reason}): {present} points")

    # =========================================================================
    # Command queue
    # =========================================================================

    def submit(self, command: str, *args: Any, **kwargs: Any) -> None:
        """
        Queue a command to run at the start of the next frame.

        Safe to call from any thread.
        """
        if command not in COMMANDS:
            raise ValueError(f"Unknown command: {command}")
        self._commands.put((command, args, kwargs))

    @property
    def pending_commands(self) -> int:
        return self._commands.qsize()

    def _drain_commands(self) -> None:
        while True:
            try:
                command, args, kwargs = self._commands.get_nowait()
            except queue.Empty:
                return
            try:
                getattr(self, command)(*args, **kwargs)
            except (RetargetError, FileNotFoundError, ValueError) as e:
                self.logger.warning(f"Queued command {command} rejected: {e}")

    def _check_between_frames(self) -> None:
        if self._in_frame:
            raise RuntimeError("Commands cannot run during frame processing; use submit()")

    # =========================================================================
    # Template commands
    # =========================================================================

    def capture_template_from_current(self) -> bool:
        """Freeze the current smoothed skeleton as the template."""
        self._check_between_frames()

        current = self._filter.smoothed
        if current is None or all(lm is None for lm in current):
            self.logger.warning("No pose detected, nothing to capture")
            return False

        self._capture_points = None
        self._set_template(current, reason="captured from current pose")
        return True

    def begin_manual_point_capture(self) -> None:
        """Start placing template points by hand."""
        self._check_between_frames()

        self._capture_points = copy_skeleton(self._template) if self._template is not None else empty_skeleton()
        self._capture_cursor = 0
        self.logger.info(
            f"Manual capture started, {len(CRITICAL_POINTS)} guided points"
        )

    def set_manual_point(self, index: int, x: float, y: float) -> bool:
        """
        Place one template point during manual capture.

        Raises:
            IndexOutOfRange: if index is not a valid landmark index
        """
        self._check_between_frames()
        index = check_index(index)

        if self._capture_points is None:
            self.logger.warning("set_manual_point ignored: manual capture not active")
            return False

        if not self._inside_canvas(x, y):
            self.logger.debug(f"Point ({x:.0f}, {y:.0f}) outside canvas, ignored")
            return False

        self._capture_points[index] = Landmark(float(x), float(y), 1.0)
        self.logger.debug(f"Set {get_landmark_name(index)} (#{index}): ({x:.0f}, {y:.0f})")
        return True

    def set_next_manual_point(self, x: float, y: float) -> Optional[int]:
        """Place the next guided point. Returns its index, or None when done or rejected."""
        self._check_between_frames()

        if self._capture_points is None or self._capture_cursor >= len(CRITICAL_POINTS):
            return None

        index = int(CRITICAL_POINTS[self._capture_cursor])
        if not self.set_manual_point(index, x, y):
            return None

        self._capture_cursor += 1
        return index

    def manual_capture_prompt(self) -> Optional[str]:
        """Name of the next guided point, or None if capture is inactive or complete."""
        if self._capture_points is None or self._capture_cursor >= len(CRITICAL_POINTS):
            return None
        return get_landmark_name(CRITICAL_POINTS[self._capture_cursor])

    def finish_manual_capture(self) -> bool:
        """Commit the manually placed points as the template."""
        self._check_between_frames()

        if self._capture_points is None:
            self.logger.warning("finish_manual_capture ignored: manual capture not active")
            return False

        placed = sum(1 for lm in self._capture_points if lm is not None)
        if placed < 2:
            self.logger.warning(f"Manual capture needs at least 2 points, got {placed}")
            return False

        points = self._capture_points
        self._capture_points = None
        self._set_template(points, reason="manual capture")
        return True

    def cancel_manual_capture(self) -> None:
        """Discard manually placed points, keeping the previous template."""
        self._check_between_frames()

        if self._capture_points is not None:
            self.logger.info("Manual capture cancelled")
        self._capture_points = None
        self._capture_cursor = 0

    def import_template(self, record: Any) -> None:
        """
        Replace the template with an exported record.

        Raises:
            InvalidImport: if the record is malformed (state is unchanged)
        """
        self._check_between_frames()

        template, bone_lengths = template_from_record(record)
        self._capture_points = None
        self._set_template(template, bone_lengths, reason="imported")

    def export_template(self) -> dict:
        """
        Serializable record of the current template and bone lengths.

        Raises:
            MissingTemplate: if no template exists
        """
        if self._template is None:
            raise MissingTemplate("No template to export")
        return template_to_record(self._template, self._bone_lengths)

    def save_template(self, path: Union[str, Path]) -> str:
        """Export the template to a JSON file."""
        if self._template is None:
            raise MissingTemplate("No template to export")
        return save_template(path, self._template, self._bone_lengths)

    def load_template(self, path: Union[str, Path]) -> None:
        """Import a template from a JSON file."""
        self._check_between_frames()

        template, bone_lengths = load_template(path)
        self._capture_points = None
        self._set_template(template, bone_lengths, reason=f"loaded from {path}")

    # =========================================================================
    # Editing commands
    # =========================================================================

    def toggle_auto_align(self) -> bool:
        """Flip auto-align. Returns the new setting."""
        self._check_between_frames()

        self._auto_align = not self._auto_align
        self.logger.info(f"AutoAlign: {'ON' if self._auto_align else 'OFF'}")
        return self._auto_align

    def enter_manual_edit_mode(self) -> None:
        """
        Allow dragging template points.

        Raises:
            MissingTemplate: if no template exists
        """
        self._check_between_frames()

        if self._template is None:
            raise MissingTemplate("Set a template before editing it")
        self._manual_edit = True

    def exit_manual_edit_mode(self) -> None:
        self._check_between_frames()
        self._manual_edit = False

    def set_canvas_size(self, width: float, height: float) -> None:
        """Bounds for manual point placement and dragging."""
        self._check_between_frames()

        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid canvas size: {width}x{height}")
        self._canvas_size = (float(width), float(height))

    def _inside_canvas(self, x: float, y: float) -> bool:
        if self._canvas_size is None:
            return True
        width, height = self._canvas_size
        return 0.0 <= x <= width and 0.0 <= y <= height

    def pick_point(self, x: float, y: float) -> Optional[int]:
        """Nearest template point within the pick radius, or None."""
        if self._template is None:
            return None

        best_index = None
        best_dist = math.inf
        for i, lm in enumerate(self._template):
            if lm is None:
                continue
            d = math.hypot(lm.x - x, lm.y - y)
            if d < best_dist:
                best_index, best_dist = i, d

        return best_index if best_dist < self._pick_radius else None

    def drag_point(self, index: int, x: float, y: float) -> bool:
        """
        Move a template point while in manual edit mode.

        Bone lengths are recomputed; the mirror decision and running
        transform are kept.

        Raises:
            IndexOutOfRange: if index is not a valid landmark index
            MissingTemplate: if no template exists
        """
        self._check_between_frames()
        index = check_index(index)

        if self._template is None:
            raise MissingTemplate("No template to edit")
        if not self._manual_edit:
            self.logger.warning("drag_point ignored: not in manual edit mode")
            return False

        if self._canvas_size is not None:
            width, height = self._canvas_size
            x = min(max(x, 0.0), width)
            y = min(max(y, 0.0), height)

        existing = self._template[index]
        visibility = existing.visibility if existing is not None else 1.0
        self._template[index] = Landmark(float(x), float(y), visibility)
        self._bone_lengths = compute_bone_lengths(self._template)
        return True

    def select_trail_landmark(self, index: int) -> None:
        self._check_between_frames()
        self._trail.select(index)

    # =========================================================================
    # Mirror / reset commands
    # =========================================================================

    def force_mirror(self, mirrored: Optional[bool]) -> None:
        """Force the orientation (True/False), or return to voting with None."""
        self._check_between_frames()
        self._mirror.force(mirrored)

    def reset_mirror_decision(self) -> None:
        """
        Return the mirror decision to Undecided.

        An active force_mirror survives the reset and is re-applied at
        once, so the decision stays locked on the forced orientation.
        """
        self._check_between_frames()
        self._mirror.reset()

    def reset_all(self) -> None:
        """Drop the template and all tracking state."""
        self._check_between_frames()

        self._filter.reset()
        self._mirror.force(None)
        self._mirror.reset()
        self._smoother.reset()
        self._trail.clear()
        self._timer.reset()
        self._reset_session()
        self.logger.info("Session reset")
