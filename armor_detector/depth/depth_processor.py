"""
Depth Processor

Back-projects image points into camera-frame 3D positions using a depth map.
"""

import math
import numpy as np
from typing import Tuple
import logging

from ..data_models import CameraIntrinsics, Position3D
from ..errors import InvalidDepth


class DepthProcessor:
    """Pinhole back-projection of image points with a co-registered depth map."""

    def __init__(self, intrinsics: CameraIntrinsics, depth_scale: float = 1.0):
        """
        Initialize depth processor.

        Args:
            intrinsics: Camera intrinsic parameters
            depth_scale: Factor converting raw depth values to output units
        """
        if depth_scale <= 0:
            raise ValueError("depth_scale must be positive")

        self.intrinsics = intrinsics
        self.depth_scale = depth_scale
        self.logger = logging.getLogger(__name__)

        self.logger.info(f"Depth processor initialized: fx={intrinsics.fx}, fy={intrinsics.fy}, "
                         f"cx={intrinsics.cx}, cy={intrinsics.cy}, scale={depth_scale}")

    @classmethod
    def from_camera_matrix(cls, camera_matrix, depth_scale: float = 1.0) -> "DepthProcessor":
        """Create a processor from a 3x3 (or flat 9-element) camera matrix."""
        return cls(CameraIntrinsics.from_camera_matrix(camera_matrix), depth_scale)

    def get_position(self, depth_map: np.ndarray, image_point: Tuple[float, float]) -> Position3D:
        """
        Get the 3D position of an image point.

        Args:
            depth_map: HxW depth image
            image_point: (u, v) pixel coordinates

        Returns:
            Position in camera-frame coordinates

        Raises:
            InvalidDepth: If the sample is zero, negative, not finite or out of frame
        """
        u, v = image_point
        col = int(round(u))
        row = int(round(v))

        height, width = depth_map.shape[:2]
        if not (0 <= row < height and 0 <= col < width):
            raise InvalidDepth(image_point)

        depth = float(depth_map[row, col]) * self.depth_scale
        if not math.isfinite(depth) or depth <= 0:
            raise InvalidDepth(image_point, depth)

        return self.back_project(u, v, depth)

    def get_position_averaged(self,
                              depth_map: np.ndarray,
                              image_point: Tuple[float, float],
                              window: int = 2) -> Position3D:
        """
        Get the 3D position using the mean of the valid depth samples around a point.

        Args:
            depth_map: HxW depth image
            image_point: (u, v) pixel coordinates
            window: Neighborhood radius in pixels

        Returns:
            Position in camera-frame coordinates

        Raises:
            InvalidDepth: If no sample in the neighborhood is valid
        """
        u, v = image_point
        col = int(round(u))
        row = int(round(v))

        height, width = depth_map.shape[:2]
        top, bottom = max(0, row - window), min(height, row + window + 1)
        left, right = max(0, col - window), min(width, col + window + 1)
        if top >= bottom or left >= right:
            raise InvalidDepth(image_point)

        patch = depth_map[top:bottom, left:right].astype(np.float64) * self.depth_scale
        valid = patch[np.isfinite(patch) & (patch > 0)]
        if valid.size == 0:
            raise InvalidDepth(image_point)

        return self.back_project(u, v, float(np.mean(valid)))

    def back_project(self, u: float, v: float, depth: float) -> Position3D:
        """Convert pixel coordinates and a depth value to a 3D point."""
        k = self.intrinsics
        return Position3D(
            x=(u - k.cx) * depth / k.fx,
            y=(v - k.cy) * depth / k.fy,
            z=depth,
        )

    def distance_to_center(self, image_point: Tuple[float, float]) -> float:
        """
        Pixel distance between an image point and the optical center.

        Args:
            image_point: (u, v) pixel coordinates

        Returns:
            Euclidean distance in pixels
        """
        return math.hypot(image_point[0] - self.intrinsics.cx, image_point[1] - self.intrinsics.cy)
