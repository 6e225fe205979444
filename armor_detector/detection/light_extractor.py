"""
Light Bar Extractor

Binarizes a frame by brightness and fits rotated rectangles to the bright blobs.
"""

import cv2
import numpy as np
from typing import List, Optional, Tuple
import logging

from ..data_models import DebugLight, Light, LightParams, TargetColor
from ..utils.config_manager import ConfigManager
from ..utils.image_ops import CHANNEL_INDEX, to_grayscale

# Contours with fewer points are too small to fit a meaningful rectangle
MIN_CONTOUR_POINTS = 5


class LightExtractor:
    """Finds light bar candidates in a color frame."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize light extractor.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        snapshot = self.config.snapshot()
        self.params = snapshot.light
        self.min_brightness = snapshot.min_brightness
        self.channel_order = snapshot.channel_order

        self.logger.info(f"Light extractor initialized: min_brightness={self.min_brightness}, "
                         f"ratio=({self.params.min_ratio}, {self.params.max_ratio}), "
                         f"max_angle={self.params.max_angle}")

    def preprocess(self, frame: np.ndarray, min_brightness: Optional[int] = None) -> np.ndarray:
        """
        Binarize a frame by brightness.

        Args:
            frame: HxWx3 color frame
            min_brightness: Gray level threshold, defaults to the configured one

        Returns:
            Binary uint8 image (0 or 255)
        """
        threshold = self.min_brightness if min_brightness is None else min_brightness
        gray = to_grayscale(frame, self.channel_order)
        _, binary = cv2.threshold(gray, threshold, 255, cv2.THRESH_BINARY)
        return binary

    def find_lights(self,
                    frame: np.ndarray,
                    binary: np.ndarray,
                    detect_color: Optional[TargetColor] = None,
                    params: Optional[LightParams] = None) -> Tuple[List[Light], List[DebugLight]]:
        """
        Fit and filter light candidates from a binary image.

        Args:
            frame: Color frame used for the color tag
            binary: Binary image from preprocess
            detect_color: If given, only lights of this color are returned
            params: Light filter thresholds, defaults to the configured ones

        Returns:
            Tuple of (lights, debug records of every geometry test)
        """
        params = params or self.params
        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        height, width = binary.shape[:2]
        lights = []
        debug_lights = []

        for contour in contours:
            if len(contour) < MIN_CONTOUR_POINTS:
                continue

            rect = cv2.minAreaRect(contour)
            light = Light.from_rotated_rect(rect)
            is_light, debug_light = self.is_light(light, params)
            debug_lights.append(debug_light)
            if not is_light:
                continue

            if not self.is_inside_frame(rect, width, height):
                continue

            color = self._dominant_color(frame, contour, cv2.boundingRect(contour))
            if detect_color is not None and color != detect_color:
                continue

            lights.append(Light.from_endpoints(light.top, light.bottom, light.width, color))

        self.logger.debug(f"Found {len(lights)} lights from {len(contours)} contours")

        return lights, debug_lights

    def extract_lights(self,
                       frame: np.ndarray,
                       detect_color: Optional[TargetColor] = None,
                       min_brightness: Optional[int] = None,
                       params: Optional[LightParams] = None) -> List[Light]:
        """
        Binarize a frame and return its filtered lights.

        Args:
            frame: HxWx3 color frame
            detect_color: If given, only lights of this color are returned
            min_brightness: Gray level threshold
            params: Light filter thresholds

        Returns:
            List of lights, in no particular order
        """
        binary = self.preprocess(frame, min_brightness)
        lights, _ = self.find_lights(frame, binary, detect_color, params)
        return lights

    def is_light(self, light: Light, params: LightParams) -> Tuple[bool, DebugLight]:
        """Check the width/length ratio and tilt of a candidate."""
        ratio = light.width / light.length if light.length > 0 else float('inf')
        ratio_ok = params.min_ratio <= ratio <= params.max_ratio
        angle_ok = light.angle <= params.max_angle
        is_light = ratio_ok and angle_ok

        return is_light, DebugLight(
            center_x=light.center[0],
            ratio=ratio,
            angle=light.angle,
            is_light=is_light,
        )

    @staticmethod
    def is_inside_frame(rect, width: int, height: int) -> bool:
        """Check that every corner of a rotated rectangle lies inside the frame."""
        corners = cv2.boxPoints(rect)
        return bool(corners[:, 0].min() >= 0 and corners[:, 1].min() >= 0
                    and corners[:, 0].max() <= width and corners[:, 1].max() <= height)

    def _dominant_color(self, frame: np.ndarray, contour: np.ndarray, rect) -> TargetColor:
        """Compare the red and blue channel sums inside the contour."""
        x, y, w, h = rect
        roi = frame[y:y + h, x:x + w]

        mask = np.zeros((h, w), dtype=np.uint8)
        cv2.drawContours(mask, [contour], -1, 255, thickness=cv2.FILLED, offset=(-x, -y))
        inside = mask > 0

        channels = CHANNEL_INDEX[self.channel_order]
        sum_red = int(roi[..., channels['red']][inside].astype(np.int64).sum())
        sum_blue = int(roi[..., channels['blue']][inside].astype(np.int64).sum())

        return TargetColor.RED if sum_red > sum_blue else TargetColor.BLUE
