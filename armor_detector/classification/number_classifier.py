"""
Armor Numeral Classifier

Crops the plate region between two lights and classifies the painted digit.
"""

import cv2
import numpy as np
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple
import logging

from ..data_models import Armor, ArmorType
from ..utils.config_manager import ConfigManager
from ..utils.image_ops import to_grayscale

UNKNOWN_LABEL = "unknown"

# Warp geometry, in pixels
LIGHT_LENGTH = 12
WARP_HEIGHT = 28
SMALL_ARMOR_WIDTH = 32
LARGE_ARMOR_WIDTH = 54
ROI_SIZE = (20, 28)  # (width, height)

# Digits that cannot appear on a plate of the given size
SIZE_MISMATCH_LABELS = {
    ArmorType.SMALL: {"1"},
    ArmorType.LARGE: {"2"},
}


def default_label_path() -> str:
    """Get path to the packaged label file."""
    return str(Path(__file__).parent.parent / "model" / "label.txt")


def load_labels(label_path: Optional[str] = None) -> List[str]:
    """Read one label per line, skipping blank lines."""
    label_path = label_path or default_label_path()
    with open(label_path, 'r') as file:
        return [line.strip() for line in file if line.strip()]


class NumberModel(Protocol):
    """Scores a normalized numeral image over a closed label set."""

    def classify(self, normalized_image: np.ndarray) -> Tuple[str, float]:
        ...


class OnnxNumberModel:
    """Numeral model backed by an ONNX network run through OpenCV DNN."""

    def __init__(self, model_path: str, label_path: Optional[str] = None):
        """
        Load the network and its labels.

        Args:
            model_path: Path to the ONNX model
            label_path: Path to the label file, defaults to the packaged one
        """
        if not Path(model_path).exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")

        self.logger = logging.getLogger(__name__)
        self.net = cv2.dnn.readNetFromONNX(model_path)
        self.class_names = load_labels(label_path)

        self.logger.info(f"Loaded numeral model {model_path} with {len(self.class_names)} labels")

    def classify(self, normalized_image: np.ndarray) -> Tuple[str, float]:
        blob = cv2.dnn.blobFromImage(normalized_image.astype(np.float32))
        self.net.setInput(blob)
        outputs = self.net.forward().reshape(-1)

        if outputs.size != len(self.class_names):
            raise ValueError(f"Model produced {outputs.size} scores for "
                             f"{len(self.class_names)} labels")

        # Softmax
        exp = np.exp(outputs - np.max(outputs))
        probabilities = exp / np.sum(exp)

        label_id = int(np.argmax(probabilities))
        return self.class_names[label_id], float(probabilities[label_id])


class NumberClassifier:
    """Extracts numeral crops from armors and classifies them."""

    def __init__(self,
                 model: NumberModel,
                 config_manager: Optional[ConfigManager] = None):
        """
        Initialize number classifier.

        Args:
            model: Numeral scoring model
            config_manager: Configuration manager instance
        """
        self.model = model
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        snapshot = self.config.snapshot()
        self.threshold = snapshot.classifier_threshold
        self.ignore_classes = snapshot.ignore_classes
        self.reject_size_mismatch = snapshot.reject_size_mismatch
        self.channel_order = snapshot.channel_order

        self.logger.info(f"Number classifier initialized: threshold={self.threshold}, "
                         f"ignore_classes={list(self.ignore_classes)}")

    @classmethod
    def from_config(cls, config_manager: Optional[ConfigManager] = None) -> "NumberClassifier":
        """Build a classifier around the ONNX model named in the configuration."""
        config = config_manager or ConfigManager()
        params = config.get_classifier_params()
        model_path = params.get('model_path')
        if not model_path:
            raise ValueError("classifier.model_path is not configured")
        return cls(OnnxNumberModel(model_path, params.get('label_path')), config)

    def extract_numbers(self, frame: np.ndarray, armors: Sequence[Armor]) -> None:
        """
        Warp the plate between each armor's lights into an upright binary crop.

        Args:
            frame: Color frame
            armors: Armors to annotate with number_image
        """
        top_light_y = (WARP_HEIGHT - LIGHT_LENGTH) / 2 - 1
        bottom_light_y = top_light_y + LIGHT_LENGTH

        for armor in armors:
            warp_width = SMALL_ARMOR_WIDTH if armor.type is ArmorType.SMALL else LARGE_ARMOR_WIDTH

            lights_vertices = np.array([
                armor.left.bottom, armor.left.top,
                armor.right.top, armor.right.bottom,
            ], dtype=np.float32)
            target_vertices = np.array([
                [0, bottom_light_y],
                [0, top_light_y],
                [warp_width - 1, top_light_y],
                [warp_width - 1, bottom_light_y],
            ], dtype=np.float32)

            transform = cv2.getPerspectiveTransform(lights_vertices, target_vertices)
            warped = cv2.warpPerspective(frame, transform, (warp_width, WARP_HEIGHT))

            # Keep the central region where the digit is painted
            roi_x = (warp_width - ROI_SIZE[0]) // 2
            number_image = warped[:, roi_x:roi_x + ROI_SIZE[0]]

            number_image = to_grayscale(number_image, self.channel_order)
            _, number_image = cv2.threshold(number_image, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
            armor.number_image = number_image

    def classify(self,
                 armors: List[Armor],
                 threshold: Optional[float] = None,
                 ignore_classes: Optional[Sequence[str]] = None,
                 reject_size_mismatch: Optional[bool] = None) -> List[Armor]:
        """
        Label each armor and drop the ones that cannot be real plates.

        A confidence below the threshold sets the label to "unknown" but keeps
        the armor. Armors whose label is in ignore_classes, or whose digit
        cannot appear on a plate of their size, are removed from the list in
        place.

        Args:
            armors: Armors with number_image set
            threshold: Confidence threshold, defaults to the configured one
            ignore_classes: Labels to drop, defaults to the configured ones
            reject_size_mismatch: Whether to drop size/digit mismatches

        Returns:
            The same list object, filtered
        """
        threshold = self.threshold if threshold is None else threshold
        ignore_classes = set(self.ignore_classes if ignore_classes is None else ignore_classes)
        if reject_size_mismatch is None:
            reject_size_mismatch = self.reject_size_mismatch

        for armor in armors:
            if armor.number_image is None:
                raise ValueError("extract_numbers must run before classify")

            normalized = armor.number_image.astype(np.float32) / 255.0
            label, confidence = self.model.classify(normalized)

            if confidence < threshold:
                label = UNKNOWN_LABEL
            armor.label = label
            armor.confidence = confidence
            armor.classification_result = f"{label}: {int(confidence * 100)}%"

        def keep(armor: Armor) -> bool:
            if armor.label in ignore_classes:
                return False
            if reject_size_mismatch and armor.label in SIZE_MISMATCH_LABELS.get(armor.type, ()):
                return False
            return True

        before = len(armors)
        armors[:] = [armor for armor in armors if keep(armor)]

        self.logger.debug(f"Classified {before} armors, kept {len(armors)}")

        return armors
