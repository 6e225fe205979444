"""
Numeral Classification Module

Extracts and classifies the digit painted on each armor plate.
"""

from .number_classifier import NumberClassifier, NumberModel, OnnxNumberModel, UNKNOWN_LABEL

__all__ = ['NumberClassifier', 'NumberModel', 'OnnxNumberModel', 'UNKNOWN_LABEL']
