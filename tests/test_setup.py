"""
Test basic setup and imports.
"""

import pytest
import numpy as np
import cv2
import yaml
from armor_detector.utils.config_manager import ConfigManager


def test_opencv_import():
    """Test that OpenCV is properly installed and working."""
    assert cv2.__version__ is not None

    # Test the OpenCV calls the detector relies on
    img = np.zeros((100, 100, 3), dtype=np.uint8)
    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    assert gray.shape == (100, 100)
    assert hasattr(cv2, 'dnn')
    assert hasattr(cv2.dnn, 'readNetFromONNX')


def test_yaml_import():
    """Test that PyYAML is properly installed and working."""
    assert yaml.safe_load("light:\n  max_angle: 40.0\n") == {'light': {'max_angle': 40.0}}


def test_config_manager():
    """Test that configuration manager works."""
    config = ConfigManager()

    # Test getting values
    assert config.get('detector.min_brightness') == 160
    assert config.get('camera.fx') == 1280.0

    # Test setting values
    config.set('camera.fx', 800.0)
    assert config.get('camera.fx') == 800.0


def test_project_structure():
    """Test that project structure is correctly set up."""
    from armor_detector import __version__
    assert __version__ == "1.0.0"

    # Test that modules can be imported
    from armor_detector.data_models import CameraIntrinsics
    from armor_detector import DetectionPipeline, LightExtractor, ArmorMatcher
    from armor_detector import NumberClassifier, DepthProcessor

    # Test data model creation
    intrinsics = CameraIntrinsics(fx=600.0, fy=600.0, cx=320.0, cy=240.0)

    assert intrinsics.fx == 600.0
    assert intrinsics.cy == 240.0
