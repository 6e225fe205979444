"""
Armor Detector

Real-time visual detection of armor plates on an opposing robot.

This package implements:
- Brightness-based light bar extraction with rotated rectangle fitting
- Geometric light pair matching into small and large armors
- Numeral classification of the plate between each light pair
- Depth map back-projection of armor centers to camera-frame 3D positions
"""

__version__ = "1.0.0"
__author__ = "Armor Detector Team"

from .detection import LightExtractor, ArmorMatcher
from .classification import NumberClassifier, NumberModel, OnnxNumberModel
from .depth import DepthProcessor
from .detection_pipeline import DetectionPipeline
from .errors import ArmorDetectorError, InvalidInput, InvalidDepth, ConfigurationOutOfRange
from .data_models import (
    Light, Armor, ArmorType, TargetColor, Position3D, CameraIntrinsics,
    LightParams, ArmorParams, DetectorConfig, DebugLight, DebugArmor,
    DebugRecord, DetectionResult
)

__all__ = [
    # Detection
    'LightExtractor', 'ArmorMatcher',
    # Classification
    'NumberClassifier', 'NumberModel', 'OnnxNumberModel',
    # Depth
    'DepthProcessor',
    # Pipeline
    'DetectionPipeline',
    # Errors
    'ArmorDetectorError', 'InvalidInput', 'InvalidDepth', 'ConfigurationOutOfRange',
    # Data Models
    'Light', 'Armor', 'ArmorType', 'TargetColor', 'Position3D', 'CameraIntrinsics',
    'LightParams', 'ArmorParams', 'DetectorConfig', 'DebugLight', 'DebugArmor',
    'DebugRecord', 'DetectionResult'
]
