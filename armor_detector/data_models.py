"""
Data Models for Armor Detector

Defines all data structures used throughout the detection pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Tuple, Dict, List, Optional
import math

import numpy as np
import cv2


Point = Tuple[float, float]

# Largest representable tilt below 90 degrees; a horizontal blob maps here
MAX_TILT = float(np.nextafter(90.0, 0.0))


class TargetColor(IntEnum):
    """Color of the lights on the opposing robot."""
    RED = 0
    BLUE = 1

    @classmethod
    def parse(cls, value) -> "TargetColor":
        """Accept an enum member, its integer value or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown target color: {value!r}")
        return cls(int(value))


class ArmorType(Enum):
    """Armor plate size category."""
    SMALL = "small"
    LARGE = "large"
    INVALID = "invalid"


@dataclass(frozen=True)
class Light:
    """Rotated rectangle fitted to one bright light bar."""
    center: Point
    top: Point
    bottom: Point
    axis: Point  # unit vector from bottom to top
    length: float
    width: float
    angle: float  # tilt from vertical in degrees
    color: TargetColor = TargetColor.RED

    @classmethod
    def from_rotated_rect(cls, rect, color: TargetColor = TargetColor.RED) -> "Light":
        """
        Build a light from an OpenCV rotated rectangle.

        The midpoints of the two short edges become the light endpoints, so
        the length is always the long side.

        Args:
            rect: ((cx, cy), (w, h), angle) as returned by cv2.minAreaRect
            color: Color tag of the light

        Returns:
            Light instance
        """
        points = cv2.boxPoints(rect).astype(np.float64)
        edge_a = np.linalg.norm(points[0] - points[1])
        edge_b = np.linalg.norm(points[1] - points[2])

        if edge_a <= edge_b:
            end_1 = (points[0] + points[1]) / 2
            end_2 = (points[2] + points[3]) / 2
            width = edge_a
        else:
            end_1 = (points[1] + points[2]) / 2
            end_2 = (points[3] + points[0]) / 2
            width = edge_b

        top, bottom = (end_1, end_2) if end_1[1] <= end_2[1] else (end_2, end_1)
        return cls.from_endpoints(tuple(top), tuple(bottom), float(width), color)

    @classmethod
    def from_endpoints(cls, top: Point, bottom: Point, width: float,
                       color: TargetColor = TargetColor.RED) -> "Light":
        """Build a light from its top and bottom endpoints."""
        dx = top[0] - bottom[0]
        dy = top[1] - bottom[1]
        length = math.hypot(dx, dy)
        if length > 0:
            axis = (dx / length, dy / length)
        else:
            axis = (0.0, -1.0)
        center = ((top[0] + bottom[0]) / 2, (top[1] + bottom[1]) / 2)
        angle = min(math.degrees(math.atan2(abs(dx), abs(dy))), MAX_TILT)

        return cls(
            center=(float(center[0]), float(center[1])),
            top=(float(top[0]), float(top[1])),
            bottom=(float(bottom[0]), float(bottom[1])),
            axis=(float(axis[0]), float(axis[1])),
            length=float(length),
            width=float(width),
            angle=float(angle),
            color=color,
        )


@dataclass(frozen=True)
class Position3D:
    """Point in camera-frame coordinates."""
    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


@dataclass
class Armor:
    """Matched light pair hypothesized to bound one armor plate."""
    left: Light
    right: Light
    type: ArmorType = ArmorType.SMALL
    number_image: Optional[np.ndarray] = None
    label: str = ""
    confidence: float = 0.0
    classification_result: str = ""
    position: Optional[Position3D] = None
    distance_to_center: Optional[float] = None
    center: Point = field(init=False)

    def __post_init__(self):
        if self.left.center[0] > self.right.center[0]:
            self.left, self.right = self.right, self.left
        self.center = (
            (self.left.center[0] + self.right.center[0]) / 2,
            (self.left.center[1] + self.right.center[1]) / 2,
        )


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole camera intrinsic parameters."""
    fx: float
    fy: float
    cx: float
    cy: float

    def __post_init__(self):
        if self.fx <= 0 or self.fy <= 0:
            raise ValueError("Focal lengths must be positive")

    @classmethod
    def from_camera_matrix(cls, camera_matrix) -> "CameraIntrinsics":
        """
        Create intrinsics from a 3x3 camera matrix.

        Args:
            camera_matrix: 3x3 matrix or flat row-major sequence of 9 values

        Returns:
            CameraIntrinsics instance
        """
        k = np.asarray(camera_matrix, dtype=np.float64).reshape(-1)
        if k.size != 9:
            raise ValueError("Camera matrix must have 9 elements")
        return cls(fx=float(k[0]), fy=float(k[4]), cx=float(k[2]), cy=float(k[5]))


@dataclass(frozen=True)
class LightParams:
    """Light filtering thresholds."""
    min_ratio: float = 0.1
    max_ratio: float = 0.55
    max_angle: float = 40.0


@dataclass(frozen=True)
class ArmorParams:
    """Light pair matching thresholds."""
    min_light_ratio: float = 0.6
    min_small_center_distance: float = 0.8
    max_small_center_distance: float = 2.8
    min_large_center_distance: float = 3.2
    max_large_center_distance: float = 4.3
    max_angle: float = 35.0


@dataclass(frozen=True)
class DetectorConfig:
    """Immutable per-frame configuration snapshot."""
    detect_color: TargetColor = TargetColor.RED
    min_brightness: int = 160
    channel_order: str = "bgr"
    light: LightParams = field(default_factory=LightParams)
    armor: ArmorParams = field(default_factory=ArmorParams)
    classifier_threshold: float = 0.7
    ignore_classes: Tuple[str, ...] = ("negative",)
    reject_size_mismatch: bool = True
    depth_fallback_window: int = 0
    keep_debug_images: bool = False


@dataclass
class DebugLight:
    """Geometry of one light candidate."""
    center_x: float
    ratio: float
    angle: float
    is_light: bool


@dataclass
class DebugArmor:
    """Geometry of one evaluated light pair."""
    center_x: float
    type: ArmorType
    light_ratio: float
    center_distance: float
    angle: float


@dataclass
class DebugRecord:
    """Side-channel telemetry for one processed frame."""
    lights: List[DebugLight] = field(default_factory=list)
    armors: List[DebugArmor] = field(default_factory=list)
    light_count: int = 0
    armor_count: int = 0
    timings_ms: Dict[str, float] = field(default_factory=dict)
    binary_image: Optional[np.ndarray] = None
    number_images: List[np.ndarray] = field(default_factory=list)


@dataclass
class DetectionResult:
    """Final output of one processed frame."""
    armors: List[Armor]
    debug: DebugRecord
