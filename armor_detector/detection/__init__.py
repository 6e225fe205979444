"""
Light and Armor Detection Module

Extracts light bars from a frame and pairs them into armor candidates.
"""

from .light_extractor import LightExtractor
from .armor_matcher import ArmorMatcher

__all__ = ['LightExtractor', 'ArmorMatcher']
