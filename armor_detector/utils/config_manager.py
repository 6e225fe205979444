"""
Configuration Management System

Handles loading, validation, and management of detector parameters.
"""

import copy
import threading
import yaml
from typing import Dict, Any, Optional
from pathlib import Path

from ..data_models import ArmorParams, DetectorConfig, LightParams, TargetColor
from ..errors import ConfigurationOutOfRange


class ConfigManager:
    """Manages configuration parameters for the armor detector."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file. If None, uses default config.
        """
        self.config_path = config_path or self._get_default_config_path()
        self._lock = threading.Lock()
        self.config = self._load_config()
        self._validate_config(self.config)
        self._snapshot = self._build_snapshot(self.config)

    def _get_default_config_path(self) -> str:
        """Get path to default configuration file."""
        package_dir = Path(__file__).parent.parent
        return str(package_dir / "config" / "default_config.yaml")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as file:
                config = yaml.safe_load(file)
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing configuration file: {e}")
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {self.config_path}")
        return config

    @staticmethod
    def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = config.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise ConfigurationOutOfRange(f"{name} must be a mapping")
        return section

    @staticmethod
    def _number(section: Dict[str, Any], name: str, key: str, default: float) -> float:
        """Read a numeric value, rejecting booleans, strings and other types."""
        value = section.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationOutOfRange(f"{name}.{key} must be a number, got {value!r}")
        return float(value)

    @staticmethod
    def _integer(section: Dict[str, Any], name: str, key: str, default: int) -> int:
        value = section.get(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationOutOfRange(f"{name}.{key} must be an integer, got {value!r}")
        return value

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate configuration parameters for consistency and feasibility."""
        frame = self._section(config, 'frame')
        if frame.get('channel_order', 'bgr') not in ('bgr', 'rgb'):
            raise ConfigurationOutOfRange("frame.channel_order must be 'bgr' or 'rgb'")

        detector = self._section(config, 'detector')
        try:
            TargetColor.parse(detector.get('detect_color', 'red'))
        except (TypeError, ValueError):
            raise ConfigurationOutOfRange("detector.detect_color must be red or blue")

        min_brightness = self._integer(detector, 'detector', 'min_brightness', 160)
        if not 0 <= min_brightness <= 255:
            raise ConfigurationOutOfRange("detector.min_brightness must be an integer in [0, 255]")

        # Validate light filter
        light = self._section(config, 'light')
        min_ratio = self._number(light, 'light', 'min_ratio', 0.1)
        max_ratio = self._number(light, 'light', 'max_ratio', 0.55)
        if not 0 <= min_ratio < max_ratio <= 1:
            raise ConfigurationOutOfRange("light ratios must satisfy 0 <= min_ratio < max_ratio <= 1")
        if not 0 < self._number(light, 'light', 'max_angle', 40.0) < 90:
            raise ConfigurationOutOfRange("light.max_angle must be in (0, 90)")

        # Validate pair matching
        armor = self._section(config, 'armor')
        if not 0 < self._number(armor, 'armor', 'min_light_ratio', 0.6) <= 1:
            raise ConfigurationOutOfRange("armor.min_light_ratio must be in (0, 1]")

        min_small = self._number(armor, 'armor', 'min_small_center_distance', 0.8)
        max_small = self._number(armor, 'armor', 'max_small_center_distance', 2.8)
        min_large = self._number(armor, 'armor', 'min_large_center_distance', 3.2)
        max_large = self._number(armor, 'armor', 'max_large_center_distance', 4.3)
        if not 0 <= min_small < max_small:
            raise ConfigurationOutOfRange("small center distance range is empty")
        if not min_large < max_large:
            raise ConfigurationOutOfRange("large center distance range is empty")
        if max_small > min_large:
            raise ConfigurationOutOfRange("small and large center distance ranges overlap")
        if not 0 < self._number(armor, 'armor', 'max_angle', 35.0) < 90:
            raise ConfigurationOutOfRange("armor.max_angle must be in (0, 90)")

        classifier = self._section(config, 'classifier')
        if not 0 <= self._number(classifier, 'classifier', 'threshold', 0.7) <= 1:
            raise ConfigurationOutOfRange("classifier.threshold must be in [0, 1]")
        ignore_classes = classifier.get('ignore_classes') or []
        if not isinstance(ignore_classes, (list, tuple)) or \
                not all(isinstance(name, str) for name in ignore_classes):
            raise ConfigurationOutOfRange("classifier.ignore_classes must be a list of labels")

        depth = self._section(config, 'depth')
        if not self._number(depth, 'depth', 'scale', 1.0) > 0:
            raise ConfigurationOutOfRange("depth.scale must be positive")
        if self._integer(depth, 'depth', 'fallback_window', 0) < 0:
            raise ConfigurationOutOfRange("depth.fallback_window must be a non-negative integer")

    def _build_snapshot(self, config: Dict[str, Any]) -> DetectorConfig:
        """Freeze the detection-relevant values into one immutable unit."""
        light = self._section(config, 'light')
        armor = self._section(config, 'armor')
        detector = self._section(config, 'detector')
        classifier = self._section(config, 'classifier')

        return DetectorConfig(
            detect_color=TargetColor.parse(detector.get('detect_color', 'red')),
            min_brightness=int(detector.get('min_brightness', 160)),
            channel_order=self._section(config, 'frame').get('channel_order', 'bgr'),
            light=LightParams(
                min_ratio=float(light.get('min_ratio', 0.1)),
                max_ratio=float(light.get('max_ratio', 0.55)),
                max_angle=float(light.get('max_angle', 40.0)),
            ),
            armor=ArmorParams(
                min_light_ratio=float(armor.get('min_light_ratio', 0.6)),
                min_small_center_distance=float(armor.get('min_small_center_distance', 0.8)),
                max_small_center_distance=float(armor.get('max_small_center_distance', 2.8)),
                min_large_center_distance=float(armor.get('min_large_center_distance', 3.2)),
                max_large_center_distance=float(armor.get('max_large_center_distance', 4.3)),
                max_angle=float(armor.get('max_angle', 35.0)),
            ),
            classifier_threshold=float(classifier.get('threshold', 0.7)),
            ignore_classes=tuple(classifier.get('ignore_classes') or ()),
            reject_size_mismatch=bool(classifier.get('reject_size_mismatch', True)),
            depth_fallback_window=int(self._section(config, 'depth').get('fallback_window', 0)),
            keep_debug_images=bool(self._section(config, 'debug').get('keep_images', False)),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'light.max_angle')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'light.max_angle')
            value: Value to set
        """
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        """
        Apply several dot-notation updates as one unit.

        The new configuration is validated before it replaces the current one,
        so a rejected update leaves the previous values in effect.

        Args:
            values: Mapping of configuration keys to new values
        """
        with self._lock:
            candidate = copy.deepcopy(self.config)
            for key, value in values.items():
                keys = key.split('.')
                config_ref = candidate
                for k in keys[:-1]:
                    if not isinstance(config_ref.get(k), dict):
                        config_ref[k] = {}
                    config_ref = config_ref[k]
                config_ref[keys[-1]] = value

            self._validate_config(candidate)
            snapshot = self._build_snapshot(candidate)
            self.config = candidate
            self._snapshot = snapshot

    def snapshot(self) -> DetectorConfig:
        """Get the current immutable configuration snapshot."""
        return self._snapshot

    def save(self, output_path: Optional[str] = None) -> None:
        """
        Save current configuration to file.

        Args:
            output_path: Path to save configuration. If None, overwrites current file.
        """
        save_path = output_path or self.config_path

        with open(save_path, 'w') as file:
            yaml.dump(self.config, file, default_flow_style=False, indent=2)

    def get_light_params(self) -> LightParams:
        """Get light filtering parameters."""
        return self._snapshot.light

    def get_armor_params(self) -> ArmorParams:
        """Get light pair matching parameters."""
        return self._snapshot.armor

    def get_classifier_params(self) -> Dict[str, Any]:
        """Get classifier parameters as a dictionary."""
        return self.config.get('classifier', {})

    def get_depth_params(self) -> Dict[str, Any]:
        """Get depth processing parameters as a dictionary."""
        return self.config.get('depth', {})

    def get_camera_params(self) -> Dict[str, Any]:
        """Get camera intrinsic parameters as a dictionary."""
        return self.config.get('camera', {})
