"""
Depth Localization Module

Converts armor image positions into camera-frame 3D positions.
"""

from .depth_processor import DepthProcessor

__all__ = ['DepthProcessor']
