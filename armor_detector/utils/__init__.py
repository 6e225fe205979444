"""
Utility Functions and Helpers

Common utilities for the armor detector.
"""

from .config_manager import ConfigManager
from .image_ops import to_grayscale

__all__ = ['ConfigManager', 'to_grayscale']
