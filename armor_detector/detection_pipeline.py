"""
Armor Detection Pipeline

Runs light extraction, pair matching, numeral classification and depth
localization on one frame at a time.
"""

import time
import cv2
import numpy as np
from typing import Optional
import logging

from .classification import NumberClassifier, NumberModel
from .data_models import CameraIntrinsics, DebugRecord, DetectionResult
from .depth import DepthProcessor
from .detection import ArmorMatcher, LightExtractor
from .errors import InvalidDepth, InvalidInput
from .utils.config_manager import ConfigManager

RESIZABLE_DEPTH_TYPES = (np.uint8, np.uint16, np.int16, np.float32, np.float64)


class DetectionPipeline:
    """Single-frame armor detection, classification and localization."""

    def __init__(self,
                 intrinsics: CameraIntrinsics,
                 config_manager: Optional[ConfigManager] = None,
                 number_model: Optional[NumberModel] = None,
                 classifier: Optional[NumberClassifier] = None):
        """
        Initialize detection pipeline.

        Args:
            intrinsics: Camera intrinsic parameters, fixed for the pipeline lifetime
            config_manager: Configuration manager shared with any live-tuning source
            number_model: Numeral model; wrapped in a NumberClassifier if given
            classifier: Ready-made classifier, takes precedence over number_model
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        self.light_extractor = LightExtractor(self.config)
        self.armor_matcher = ArmorMatcher(self.config)
        self.depth_processor = DepthProcessor(
            intrinsics, float(self.config.get('depth.scale', 1.0))
        )

        if classifier is None and number_model is not None:
            classifier = NumberClassifier(number_model, self.config)
        self.classifier = classifier

        if self.classifier is None:
            self.logger.warning("No numeral model given, armors will not be classified")

        self.logger.info("Detection pipeline initialized")

    def process(self, frame: np.ndarray, depth_map: Optional[np.ndarray] = None) -> DetectionResult:
        """
        Detect, classify and localize armors in one frame.

        Args:
            frame: HxWx3 color frame
            depth_map: Optional depth image co-registered with the frame

        Returns:
            Detection result with the final armors and the debug record

        Raises:
            InvalidInput: If the frame or depth map is malformed
        """
        self._validate_frame(frame)
        if depth_map is not None:
            depth_map = self._prepare_depth_map(depth_map, frame.shape[:2])

        # One snapshot per frame; later updates apply from the next frame on
        config = self.config.snapshot()
        debug = DebugRecord()
        timings = debug.timings_ms

        start = time.perf_counter()
        stage_start = start

        def lap(name: str) -> None:
            nonlocal stage_start
            now = time.perf_counter()
            timings[name] = (now - stage_start) * 1000
            stage_start = now

        binary = self.light_extractor.preprocess(frame, config.min_brightness)
        lap('preprocess')

        lights, debug.lights = self.light_extractor.find_lights(
            frame, binary, config.detect_color, config.light
        )
        lap('find_lights')

        armors, debug.armors = self.armor_matcher.match_lights_with_debug(
            lights, config.detect_color, config.armor
        )
        debug.light_count = len(lights)
        debug.armor_count = len(armors)
        lap('match')

        if armors and self.classifier is not None:
            self.classifier.extract_numbers(frame, armors)
            self.classifier.classify(
                armors,
                threshold=config.classifier_threshold,
                ignore_classes=config.ignore_classes,
                reject_size_mismatch=config.reject_size_mismatch,
            )
        lap('classify')

        for armor in armors:
            armor.distance_to_center = self.depth_processor.distance_to_center(armor.center)
            if depth_map is not None:
                armor.position = self._locate(depth_map, armor.center, config.depth_fallback_window)
        lap('depth')

        timings['total'] = (time.perf_counter() - start) * 1000

        debug.lights.sort(key=lambda l: l.center_x)
        debug.armors.sort(key=lambda a: a.center_x)
        if config.keep_debug_images:
            debug.binary_image = binary
            debug.number_images = [a.number_image for a in armors if a.number_image is not None]

        self.logger.debug(f"Frame processed: {debug.light_count} lights, {debug.armor_count} armors, "
                          f"{len(armors)} kept, {timings['total']:.2f}ms")

        return DetectionResult(armors=armors, debug=debug)

    def _locate(self, depth_map: np.ndarray, point, fallback_window: int):
        """Position of a point, or None when its depth is unusable."""
        try:
            return self.depth_processor.get_position(depth_map, point)
        except InvalidDepth as e:
            if fallback_window <= 0:
                self.logger.debug(f"Armor kept without position: {e}")
                return None

        try:
            return self.depth_processor.get_position_averaged(depth_map, point, fallback_window)
        except InvalidDepth as e:
            self.logger.debug(f"Armor kept without position after neighborhood retry: {e}")
            return None

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        if frame is None or not isinstance(frame, np.ndarray):
            raise InvalidInput("Frame must be a numpy array")
        if frame.ndim != 3 or frame.shape[2] != 3:
            raise InvalidInput(f"Frame must be HxWx3, got shape {frame.shape}")
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise InvalidInput("Frame has zero size")
        if frame.dtype != np.uint8:
            raise InvalidInput(f"Frame must be uint8, got {frame.dtype}")

    @staticmethod
    def _prepare_depth_map(depth_map: np.ndarray, frame_size) -> np.ndarray:
        """Validate a depth map and bring it to the frame resolution."""
        if not isinstance(depth_map, np.ndarray) or depth_map.ndim != 2:
            raise InvalidInput("Depth map must be a 2-D numpy array")
        if depth_map.size == 0:
            raise InvalidInput("Depth map has zero size")
        if not (np.issubdtype(depth_map.dtype, np.integer) or np.issubdtype(depth_map.dtype, np.floating)):
            raise InvalidInput(f"Depth map must be numeric, got {depth_map.dtype}")

        height, width = frame_size
        if depth_map.shape != (height, width):
            # Element types cv2.resize handles directly
            if depth_map.dtype not in RESIZABLE_DEPTH_TYPES:
                depth_map = depth_map.astype(np.float64)
            depth_map = cv2.resize(depth_map, (width, height), interpolation=cv2.INTER_NEAREST)
        return depth_map
