"""
Armor Matcher

Pairs light bars into armor candidates under geometric constraints.
"""

import math
from typing import List, Optional, Sequence, Tuple
import logging

from ..data_models import Armor, ArmorParams, ArmorType, DebugArmor, Light, TargetColor
from ..utils.config_manager import ConfigManager


class ArmorMatcher:
    """Matches pairs of same-colored lights into armors."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize armor matcher.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        self.params = self.config.snapshot().armor

        self.logger.info(f"Armor matcher initialized: min_light_ratio={self.params.min_light_ratio}, "
                         f"max_angle={self.params.max_angle}")

    def match_lights(self,
                     lights: Sequence[Light],
                     detect_color: Optional[TargetColor] = None,
                     params: Optional[ArmorParams] = None) -> List[Armor]:
        """
        Pair lights into armors.

        Args:
            lights: Lights of one frame
            detect_color: If given, only lights of this color are paired
            params: Matching thresholds, defaults to the configured ones

        Returns:
            List of armors; no light appears in more than one armor
        """
        armors, _ = self.match_lights_with_debug(lights, detect_color, params)
        return armors

    def match_lights_with_debug(self,
                                lights: Sequence[Light],
                                detect_color: Optional[TargetColor] = None,
                                params: Optional[ArmorParams] = None) -> Tuple[List[Armor], List[DebugArmor]]:
        """
        Pair lights into armors and report the geometry of every evaluated pair.

        Every valid pair is ranked by (highest length ratio, smallest deviation
        of its center distance from the middle of its size range, then sorted
        position) and accepted greedily while both of its lights are unused.

        Args:
            lights: Lights of one frame
            detect_color: If given, only lights of this color are paired
            params: Matching thresholds, defaults to the configured ones

        Returns:
            Tuple of (armors, debug records)
        """
        params = params or self.params
        ordered = sorted(lights, key=lambda l: (int(l.color), l.center[0], l.center[1]))

        candidates = []
        debug_armors = []

        for i, light_1 in enumerate(ordered):
            if detect_color is not None and light_1.color != detect_color:
                continue
            for j in range(i + 1, len(ordered)):
                light_2 = ordered[j]
                if light_2.color != light_1.color:
                    break

                if self.contains_light(light_1, light_2, ordered):
                    continue

                armor_type, debug_armor = self.is_armor(light_1, light_2, params)
                debug_armors.append(debug_armor)
                if armor_type is ArmorType.INVALID:
                    continue

                deviation = abs(debug_armor.center_distance - self._range_middle(armor_type, params))
                score = (-debug_armor.light_ratio, deviation, i, j)
                candidates.append((score, i, j, armor_type))

        armors = []
        used = set()
        for _, i, j, armor_type in sorted(candidates, key=lambda c: c[0]):
            if i in used or j in used:
                continue
            used.update((i, j))
            armors.append(Armor(ordered[i], ordered[j], type=armor_type))

        self.logger.debug(f"Matched {len(armors)} armors from {len(lights)} lights "
                          f"({len(candidates)} valid pairs)")

        return armors, debug_armors

    def is_armor(self, light_1: Light, light_2: Light,
                 params: ArmorParams) -> Tuple[ArmorType, DebugArmor]:
        """
        Classify a light pair.

        Args:
            light_1: First light
            light_2: Second light
            params: Matching thresholds

        Returns:
            Tuple of (armor type, debug record); INVALID when any test fails
        """
        longer = max(light_1.length, light_2.length)
        light_ratio = min(light_1.length, light_2.length) / longer if longer > 0 else 0.0
        ratio_ok = light_ratio >= params.min_light_ratio

        avg_length = (light_1.length + light_2.length) / 2
        dx = light_1.center[0] - light_2.center[0]
        dy = light_1.center[1] - light_2.center[1]
        center_distance = math.hypot(dx, dy) / avg_length if avg_length > 0 else float('inf')
        small_ok = params.min_small_center_distance <= center_distance <= params.max_small_center_distance
        large_ok = params.min_large_center_distance <= center_distance <= params.max_large_center_distance

        angle = max(self.axis_deviation(light_1, dx, dy), self.axis_deviation(light_2, dx, dy))
        angle_ok = angle <= params.max_angle

        if ratio_ok and (small_ok or large_ok) and angle_ok:
            armor_type = ArmorType.LARGE if large_ok else ArmorType.SMALL
        else:
            armor_type = ArmorType.INVALID

        return armor_type, DebugArmor(
            center_x=(light_1.center[0] + light_2.center[0]) / 2,
            type=armor_type,
            light_ratio=light_ratio,
            center_distance=center_distance,
            angle=angle,
        )

    @staticmethod
    def axis_deviation(light: Light, dx: float, dy: float) -> float:
        """
        Angle between the line joining two centers and the perpendicular of a light axis.

        Args:
            light: Light whose axis is the reference
            dx: X component of the joining line
            dy: Y component of the joining line

        Returns:
            Deviation in degrees, 0 when the line crosses the light at a right angle
        """
        norm = math.hypot(dx, dy)
        if norm == 0:
            return 90.0
        cosine = abs(dx * light.axis[0] + dy * light.axis[1]) / norm
        return math.degrees(math.asin(min(cosine, 1.0)))

    @staticmethod
    def contains_light(light_1: Light, light_2: Light, lights: Sequence[Light]) -> bool:
        """Check whether another light lies inside the bounding box of the pair."""
        points = (light_1.top, light_1.bottom, light_2.top, light_2.bottom)
        min_x = min(p[0] for p in points)
        max_x = max(p[0] for p in points)
        min_y = min(p[1] for p in points)
        max_y = max(p[1] for p in points)

        for test_light in lights:
            if test_light is light_1 or test_light is light_2:
                continue
            for p in (test_light.top, test_light.bottom, test_light.center):
                if min_x <= p[0] < max_x and min_y <= p[1] < max_y:
                    return True

        return False

    @staticmethod
    def _range_middle(armor_type: ArmorType, params: ArmorParams) -> float:
        if armor_type is ArmorType.LARGE:
            return (params.min_large_center_distance + params.max_large_center_distance) / 2
        return (params.min_small_center_distance + params.max_small_center_distance) / 2
