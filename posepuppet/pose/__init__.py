"""Pose input module - detector adaptation, landmark filtering, occlusion"""

from .detector import DetectionGate, fit_canvas_size, landmarks_from_detector
from .landmark_filter import LandmarkFilter, LandmarkFilterParams
from .occlusion import OcclusionPredictor
from .trail import LandmarkTrail, TrailPoint

__all__ = [
    "DetectionGate", "fit_canvas_size", "landmarks_from_detector",
    "LandmarkFilter", "LandmarkFilterParams",
    "OcclusionPredictor",
    "LandmarkTrail", "TrailPoint",
]
