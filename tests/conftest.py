"""
Pytest configuration and fixtures for armor detector tests.
"""

import math

import pytest
import numpy as np
import cv2
from typing import Tuple

from armor_detector.data_models import CameraIntrinsics, Light, TargetColor
from armor_detector.utils.config_manager import ConfigManager

# BGR colors of a saturated light bar: bright core with a dominant channel
RED_LIGHT = (180, 180, 255)
BLUE_LIGHT = (255, 180, 180)

FRAME_HEIGHT, FRAME_WIDTH = 480, 640


class FixedNumberModel:
    """Numeral model returning the same label and confidence for every crop."""

    def __init__(self, label: str = "3", confidence: float = 0.95):
        self.label = label
        self.confidence = confidence
        self.calls = 0

    def classify(self, normalized_image: np.ndarray) -> Tuple[str, float]:
        self.calls += 1
        return self.label, self.confidence


class SequenceNumberModel:
    """Numeral model returning scripted outputs in call order."""

    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.index = 0

    def classify(self, normalized_image: np.ndarray) -> Tuple[str, float]:
        output = self.outputs[self.index % len(self.outputs)]
        self.index += 1
        return output


def blank_frame(height: int = FRAME_HEIGHT, width: int = FRAME_WIDTH) -> np.ndarray:
    """Black BGR frame."""
    return np.zeros((height, width, 3), dtype=np.uint8)


def draw_light(frame: np.ndarray,
               center: Tuple[int, int],
               half_length: int = 25,
               half_width: int = 5,
               color=RED_LIGHT,
               tilt: float = 0.0) -> np.ndarray:
    """Draw a filled elliptical light bar, tilt in degrees from vertical."""
    cv2.ellipse(frame, center, (half_width, half_length), tilt, 0, 360, color, -1)
    return frame


def make_light(x: float, y: float, length: float = 50.0, width: float = 10.0,
               color: TargetColor = TargetColor.RED, tilt: float = 0.0) -> Light:
    """Light centered at (x, y), tilt in degrees clockwise from vertical."""
    dx = length / 2 * math.sin(math.radians(tilt))
    dy = length / 2 * math.cos(math.radians(tilt))
    return Light.from_endpoints((x + dx, y - dy), (x - dx, y + dy), width, color)


@pytest.fixture
def config_manager():
    """Fixture providing a configuration manager instance."""
    return ConfigManager()


@pytest.fixture
def intrinsics():
    """Fixture providing camera intrinsics centered on the synthetic frame."""
    return CameraIntrinsics(fx=500.0, fy=500.0, cx=FRAME_WIDTH / 2, cy=FRAME_HEIGHT / 2)


@pytest.fixture
def small_armor_frame():
    """Frame with one red small armor centered near (350, 240)."""
    frame = blank_frame()
    draw_light(frame, (300, 240))
    draw_light(frame, (400, 240))
    return frame


@pytest.fixture
def large_armor_frame():
    """Frame with one red large armor centered near (290, 240)."""
    frame = blank_frame()
    draw_light(frame, (200, 240))
    draw_light(frame, (380, 240))
    return frame
