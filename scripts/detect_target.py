#!/usr/bin/env python3
"""
Run target detection on an image file or webcam and show the result.

Usage:
    python3 detect_target.py --config config/target.yaml --image photo.png
    python3 detect_target.py --config config/target.yaml --image photo.png --save obs.yaml
    python3 detect_target.py --config config/target.yaml --webcam
"""

import argparse
import logging
import os
import sys

import cv2

# Add package to path for standalone execution
try:
    from calibration_target_observer.errors import DetectionError, RoiError
    from calibration_target_observer.observer import CameraObserver
    from calibration_target_observer.pattern_spec import PatternSpec, Roi
    from calibration_target_observer.utils import load_target_config, save_observations_yaml
except ImportError:
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    from calibration_target_observer.errors import DetectionError, RoiError
    from calibration_target_observer.observer import CameraObserver
    from calibration_target_observer.pattern_spec import PatternSpec, Roi
    from calibration_target_observer.utils import load_target_config, save_observations_yaml


WINDOW_NAME = 'Target Detection'


class LatestImage:
    """Diagnostics sink keeping the last annotated image."""

    def __init__(self):
        self.image = None

    def __call__(self, image):
        self.image = image


def create_observer(config_path):
    """Create an observer for the target described in a config file."""
    config = load_target_config(config_path)
    spec = PatternSpec.from_dict(config)
    roi = Roi.from_dict(config['roi']) if config.get('roi') else None

    sink = LatestImage()
    observer = CameraObserver(config.get('detection') or {}, diagnostics_sink=sink)
    observer.add_target(spec, roi, config.get('cost_type', 'CameraReprjErrorWithDistortion'))

    print(f"  Loaded target: {spec.pattern_type.value} {spec.rows}x{spec.cols}")
    return observer, sink


def run_detection(observer, image):
    """Detect the target; returns the observation list (empty when not found)."""
    try:
        return observer.get_observations(image)
    except DetectionError as e:
        print(f"  ✗ {e}")
    except RoiError as e:
        print(f"  ✗ {e}")
    return []


def test_with_image(image_path, observer, sink, save_path=None, show=True):
    """Test detection with image file."""
    print(f"\nLoading image: {image_path}")
    image = cv2.imread(image_path)

    if image is None:
        print(f"  ✗ Could not load image: {image_path}")
        return

    print(f"  Image size: {image.shape[1]}x{image.shape[0]}")

    observations = run_detection(observer, image)
    print(f"  Target points detected: {len(observations)}")
    for obs in observations[:5]:
        print(f"    {obs.target_point_id}: ({obs.image_x:.1f}, {obs.image_y:.1f})")

    if observations and save_path:
        save_observations_yaml(observations, save_path, image_name=image_path)

    if show and sink.image is not None:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.imshow(WINDOW_NAME, sink.image)
        print("\nPress any key to close...")
        cv2.waitKey(0)
        cv2.destroyAllWindows()


def test_with_webcam(observer, sink):
    """Test detection with webcam."""
    print("\nOpening webcam (press 'q' to quit)...")
    cap = cv2.VideoCapture(0)

    if not cap.isOpened():
        print("  ✗ Could not open webcam")
        return

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)

    while True:
        ret, frame = cap.read()
        if not ret:
            break

        observations = run_detection(observer, frame)
        if sink.image is not None:
            vis = cv2.cvtColor(sink.image, cv2.COLOR_GRAY2BGR)
            cv2.putText(vis, f"Points: {len(observations)}", (10, 30),
                        cv2.FONT_HERSHEY_SIMPLEX, 1, (0, 255, 255), 2)
            cv2.imshow(WINDOW_NAME, vis)

        if cv2.waitKey(1) & 0xFF == ord('q'):
            break

    cap.release()
    cv2.destroyAllWindows()


def main():
    parser = argparse.ArgumentParser(description='Test calibration target detection')
    parser.add_argument('--config', '-c', type=str, required=True, help='Target config YAML')
    parser.add_argument('--image', '-i', type=str, help='Test with image file')
    parser.add_argument('--webcam', '-w', action='store_true', help='Test with webcam')
    parser.add_argument('--save', '-s', type=str, default=None,
                        help='Save observations to YAML (image mode only)')
    parser.add_argument('--no-show', action='store_true', help='Do not open a window')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    print("=" * 60)
    print("Calibration Target Detection Test")
    print("=" * 60)

    print("\nCreating observer from config...")
    observer, sink = create_observer(args.config)
    print("  ✓ Observer created")

    if args.image:
        test_with_image(args.image, observer, sink, args.save, show=not args.no_show)
    else:
        test_with_webcam(observer, sink)


if __name__ == '__main__':
    main()
