"""
Error Types

Conditions raised by the detection pipeline and its configuration layer.
"""


class ArmorDetectorError(Exception):
    """Base class for armor detector errors."""


class InvalidInput(ArmorDetectorError, ValueError):
    """Frame or depth map cannot be processed at all."""


class InvalidDepth(ArmorDetectorError):
    """Depth sample is missing, non-positive, non-finite or out of frame."""

    def __init__(self, image_point, value=None):
        self.image_point = image_point
        self.value = value
        super().__init__(f"Invalid depth {value!r} at image point {tuple(image_point)}")


class ConfigurationOutOfRange(ArmorDetectorError, ValueError):
    """Configuration value rejected at update time."""
