"""
Image Helpers

Channel-order aware conversions shared by the detection stages.
"""

import cv2
import numpy as np

# Channel index of red and blue for each supported frame layout
CHANNEL_INDEX = {
    'bgr': {'red': 2, 'blue': 0},
    'rgb': {'red': 0, 'blue': 2},
}


def to_grayscale(image: np.ndarray, channel_order: str = 'bgr') -> np.ndarray:
    """
    Convert a color image to grayscale.

    Args:
        image: HxWx3 color image or HxW grayscale image
        channel_order: 'bgr' or 'rgb'

    Returns:
        Single-channel uint8 image
    """
    if image.ndim == 2:
        return image.copy()
    code = cv2.COLOR_BGR2GRAY if channel_order == 'bgr' else cv2.COLOR_RGB2GRAY
    return cv2.cvtColor(image, code)
