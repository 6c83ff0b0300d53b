"""Adapters between an external pose detector and the retargeting pipeline.

The detector itself is not part of this package. It is expected to
produce up to 33 samples per frame in normalized image coordinates,
either as ``(x, y, visibility)`` tuples, dicts with those keys, or
objects exposing ``x``/``y``/``visibility`` attributes (MediaPipe's
``NormalizedLandmark`` works as-is).
"""

import threading
from typing import Any, Optional, Sequence, Tuple

from posepuppet.core import get_logger
from posepuppet.core.landmarks import NUM_LANDMARKS, Landmark, Skeleton, empty_skeleton


logger = get_logger("pose.detector")


def fit_canvas_size(
    video_width: int,
    video_height: int,
    max_width: int = 1280
) -> Tuple[int, int]:
    """
    Working canvas size for a video, keeping its aspect ratio.

    Videos wider than max_width are scaled down to max_width.
    """
    if video_width <= 0 or video_height <= 0:
        raise ValueError(f"Invalid video size: {video_width}x{video_height}")

    if video_width > max_width:
        return max_width, int(round(max_width * (video_height / video_width)))
    return video_width, video_height


def _read_sample(sample: Any) -> Tuple[float, float, float]:
    if isinstance(sample, dict):
        x = sample.get("x")
        y = sample.get("y")
        v = sample.get("visibility", sample.get("v"))
    elif isinstance(sample, (tuple, list)):
        if len(sample) not in (2, 3):
            raise ValueError(f"Expected (x, y[, visibility]), got {len(sample)} values")
        x, y = sample[0], sample[1]
        v = sample[2] if len(sample) == 3 else None
    else:
        x = getattr(sample, "x", None)
        y = getattr(sample, "y", None)
        v = getattr(sample, "visibility", None)

    if x is None or y is None:
        raise ValueError(f"Detector sample without coordinates: {sample!r}")

    # Detectors that do not report visibility are treated as fully visible
    return float(x), float(y), 1.0 if v is None else float(v)


def landmarks_from_detector(
    samples: Optional[Sequence[Any]],
    image_size: Tuple[int, int],
    canvas_size: Optional[Tuple[int, int]] = None
) -> Optional[Skeleton]:
    """
    Convert normalized detector output into a display-space skeleton.

    Args:
        samples: Up to 33 samples (None entries for undetected points),
                 or None/empty when nothing was detected this frame
        image_size: Source image (width, height) in pixels
        canvas_size: Working canvas (width, height); defaults to image_size

    Returns:
        33-slot skeleton in canvas coordinates, or None if no detection
    """
    if not samples:
        return None

    if len(samples) > NUM_LANDMARKS:
        raise ValueError(f"Detector returned {len(samples)} landmarks, expected at most {NUM_LANDMARKS}")

    image_w, image_h = image_size
    canvas_w, canvas_h = canvas_size or image_size
    if image_w <= 0 or image_h <= 0:
        raise ValueError(f"Invalid image size: {image_w}x{image_h}")

    scale_x = canvas_w / image_w
    scale_y = canvas_h / image_h

    skeleton = empty_skeleton()
    for i, sample in enumerate(samples):
        if sample is None:
            continue
        x, y, v = _read_sample(sample)
        skeleton[i] = Landmark(
            x * image_w * scale_x,
            y * image_h * scale_y,
            min(max(v, 0.0), 1.0),
        )

    return skeleton


class DetectionGate:
    """
    Admits at most one in-flight detector request.

    A tick that finds a request still pending skips sending a new one
    instead of queueing it, so a slow detector drops frames rather than
    building up latency.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = False
        self._dropped = 0

    def try_begin(self) -> bool:
        """Claim the gate for a new request; False if one is still pending."""
        with self._lock:
            if self._pending:
                self._dropped += 1
                return False
            self._pending = True
            return True

    def complete(self) -> None:
        """Mark the in-flight request as finished (result or failure)."""
        with self._lock:
            self._pending = False

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending

    @property
    def dropped(self) -> int:
        """Number of ticks skipped because a request was pending."""
        with self._lock:
            return self._dropped
