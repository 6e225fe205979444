"""
Main entry point for the Armor Detector

Runs the detection pipeline on a single image and prints the detected armors.
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2
import numpy as np

from armor_detector.classification import NumberClassifier, OnnxNumberModel
from armor_detector.data_models import CameraIntrinsics
from armor_detector.detection_pipeline import DetectionPipeline
from armor_detector.errors import InvalidInput
from armor_detector.utils.config_manager import ConfigManager


def main(argv=None):
    """Main entry point for the armor detector."""
    parser = argparse.ArgumentParser(
        description="Detect, classify and localize armor plates in an image"
    )

    parser.add_argument(
        "--image",
        type=str,
        required=True,
        help="Path to the color image"
    )

    parser.add_argument(
        "--depth",
        type=str,
        help="Path to a co-registered depth map saved with numpy (.npy)"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--model",
        type=str,
        help="Path to the ONNX numeral model (overrides classifier.model_path)"
    )

    parser.add_argument(
        "--labels",
        type=str,
        help="Path to the label file (overrides classifier.label_path)"
    )

    parser.add_argument(
        "--camera",
        type=float,
        nargs=4,
        metavar=("FX", "FY", "CX", "CY"),
        help="Camera intrinsics (defaults to the camera section of the configuration)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print per-stage timings and rejected candidates"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s"
    )

    # Load configuration
    try:
        config = ConfigManager(args.config)
        print(f"Loaded configuration from: {config.config_path}")
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return 1

    if args.camera:
        fx, fy, cx, cy = args.camera
    else:
        camera = config.get_camera_params()
        fx, fy, cx, cy = (camera.get(k) for k in ('fx', 'fy', 'cx', 'cy'))
        if None in (fx, fy, cx, cy):
            print("Camera intrinsics missing: pass --camera or set the camera section")
            return 1
    intrinsics = CameraIntrinsics(fx=fx, fy=fy, cx=cx, cy=cy)

    image_path = Path(args.image)
    frame = cv2.imread(str(image_path)) if image_path.exists() else None
    if frame is None:
        print(f"Could not read image: {args.image}")
        return 1

    depth_map = None
    if args.depth:
        try:
            depth_map = np.load(args.depth)
        except (OSError, ValueError) as e:
            print(f"Could not read depth map: {e}")
            return 1

    classifier = None
    model_path = args.model or config.get('classifier.model_path')
    if model_path:
        label_path = args.labels or config.get('classifier.label_path')
        try:
            classifier = NumberClassifier(OnnxNumberModel(model_path, label_path), config)
        except (FileNotFoundError, cv2.error) as e:
            print(f"Could not load numeral model: {e}")
            return 1

    pipeline = DetectionPipeline(intrinsics, config, classifier=classifier)

    try:
        result = pipeline.process(frame, depth_map)
    except InvalidInput as e:
        print(f"Invalid input: {e}")
        return 1

    print("Armor Detector")
    print("=" * 50)
    print(f"Lights: {result.debug.light_count}")
    print(f"Armors: {len(result.armors)} (matched {result.debug.armor_count})")

    for i, armor in enumerate(result.armors):
        line = (f"[{i}] {armor.type.value:5s} center=({armor.center[0]:.1f}, {armor.center[1]:.1f}) "
                f"label={armor.label or '-'} confidence={armor.confidence:.2f} "
                f"distance_to_center={armor.distance_to_center:.1f}px")
        if armor.position is not None:
            p = armor.position
            line += f" position=({p.x:.3f}, {p.y:.3f}, {p.z:.3f})"
        print(line)

    if args.debug:
        print("\nTimings (ms):")
        for stage, ms in result.debug.timings_ms.items():
            print(f"  {stage:12s} {ms:.3f}")
        print("\nEvaluated pairs:")
        for record in result.debug.armors:
            print(f"  x={record.center_x:.1f} type={record.type.value} "
                  f"light_ratio={record.light_ratio:.2f} "
                  f"center_distance={record.center_distance:.2f} angle={record.angle:.1f}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
