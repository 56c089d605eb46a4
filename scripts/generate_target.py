#!/usr/bin/env python3
"""
Generate a printable calibration target image.

Supports chessboards, symmetric and asymmetric circle grids, and combined
targets tiled from identical circle sub-grids.

Usage:
    python3 generate_target.py --config config/target.yaml -o target.png
    python3 generate_target.py --type Chessboard --rows 6 --cols 9 --spacing 30 -o board.png
"""

import argparse
import cv2
import os
import sys

# Add package to path for standalone execution
try:
    from calibration_target_observer.pattern_spec import PatternSpec, PatternType
    from calibration_target_observer.target_rendering import (
        render_chessboard, render_circle_grid, render_combined_circle_grid
    )
    from calibration_target_observer.utils import load_target_config
except ImportError:
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    from calibration_target_observer.pattern_spec import PatternSpec, PatternType
    from calibration_target_observer.target_rendering import (
        render_chessboard, render_circle_grid, render_combined_circle_grid
    )
    from calibration_target_observer.utils import load_target_config


def generate_target(
    spec: PatternSpec,
    spacing_mm: float = 30.0,
    radius_ratio: float = 0.25,
    gap_mm: float = None,
    dpi: int = 300,
    margin_mm: float = 20.0,
    output_path: str = "target.png",
    add_info: bool = True,
):
    """
    Generate a target image at physical scale.

    Args:
        spec: Target description
        spacing_mm: Chessboard square side or circle pitch in mm
        radius_ratio: Circle radius as a fraction of the pitch
        gap_mm: Extra space between sub-grids of a combined target (default: one pitch)
        dpi: Output resolution in dots per inch
        margin_mm: White margin around the target in mm
        output_path: Output image path
        add_info: Whether to add target info text
    """
    px_per_mm = dpi / 25.4
    spacing_px = int(round(spacing_mm * px_per_mm))
    margin_px = int(round(margin_mm * px_per_mm))
    radius_px = max(1, int(round(spacing_px * radius_ratio)))

    if spec.pattern_type is PatternType.CHESSBOARD:
        image, _ = render_chessboard(spec.rows, spec.cols, spacing_px, margin_px)
    elif spec.pattern_type is PatternType.COMBINED_CIRCLE_GRID:
        gap_px = spacing_px if gap_mm is None else int(round(gap_mm * px_per_mm))
        image, _ = render_combined_circle_grid(
            spec.sub_rows, spec.sub_cols,
            spec.rows // spec.sub_rows, spec.cols // spec.sub_cols,
            spacing_px, radius_px, gap_px, margin_px
        )
    else:
        image, _ = render_circle_grid(
            spec.rows, spec.cols, spacing_px, radius_px, margin_px,
            asymmetric=not spec.symmetric
        )

    if add_info:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        info_text = (
            f"{spec.pattern_type.value} | {spec.rows}x{spec.cols} | "
            f"Spacing: {spacing_mm}mm"
        )
        if spec.pattern_type is PatternType.COMBINED_CIRCLE_GRID:
            info_text += f" | Sub-grid: {spec.sub_rows}x{spec.sub_cols}"

        font = cv2.FONT_HERSHEY_SIMPLEX
        font_scale = dpi / 300.0
        thickness = max(1, int(dpi / 150))
        (_, text_height), _ = cv2.getTextSize(info_text, font, font_scale, thickness)
        cv2.putText(image, info_text, (margin_px // 2, image.shape[0] - margin_px // 4 - text_height // 2),
                    font, font_scale, (0, 0, 0), thickness)

    cv2.imwrite(output_path, image)

    print(f"\nTarget generated: {output_path}")
    print(f"  Pattern: {spec.pattern_type.value}, {spec.rows} x {spec.cols} points")
    print(f"  Spacing: {spacing_mm} mm ({spacing_px} px)")
    print(f"  Image resolution: {image.shape[1]} x {image.shape[0]} pixels @ {dpi} DPI")
    print("\nIMPORTANT: When printing, ensure:")
    print("  1. Print at 100% scale (no fit-to-page)")
    print("  2. Use matte paper to avoid reflections")
    print("  3. Mount on rigid, flat surface")
    print(f"  4. Verify spacing with ruler: should be exactly {spacing_mm} mm")

    return output_path


def main():
    parser = argparse.ArgumentParser(
        description='Generate a printable calibration target',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # From a target config file:
  python generate_target.py --config config/target.yaml -o target.png

  # A 6x9 chessboard with 30 mm squares:
  python generate_target.py --type Chessboard --rows 6 --cols 9 --spacing 30 -o board.png
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Path to target.yaml config file')
    parser.add_argument('--type', type=str, default='Chessboard',
                        help='Target type (default: Chessboard)')
    parser.add_argument('--rows', type=int, default=6, help='Pattern rows (default: 6)')
    parser.add_argument('--cols', type=int, default=9, help='Pattern cols (default: 9)')
    parser.add_argument('--sub-rows', type=int, default=None, help='Sub-grid rows (combined targets)')
    parser.add_argument('--sub-cols', type=int, default=None, help='Sub-grid cols (combined targets)')
    parser.add_argument('--spacing', type=float, default=30.0,
                        help='Square side or circle pitch in mm (default: 30)')
    parser.add_argument('--gap', type=float, default=None,
                        help='Extra space between sub-grids in mm (default: one spacing)')
    parser.add_argument('--dpi', type=int, default=300,
                        help='Output resolution in DPI (default: 300)')
    parser.add_argument('--margin', type=float, default=20.0,
                        help='Margin around target in mm (default: 20)')
    parser.add_argument('--output', '-o', type=str, default='target.png',
                        help='Output image path')
    parser.add_argument('--no-info', action='store_true',
                        help='Do not add info text to the output')

    args = parser.parse_args()

    spacing = args.spacing
    gap = args.gap
    if args.config:
        config = load_target_config(args.config)
        spec = PatternSpec.from_dict(config)
        if 'circle_spacing' in config:
            spacing = float(config['circle_spacing']) * 1000.0
        if config.get('subpattern_gap') is not None:
            gap = float(config['subpattern_gap']) * 1000.0
    else:
        spec = PatternSpec.from_dict({
            'target_type': args.type,
            'pattern_rows': args.rows,
            'pattern_cols': args.cols,
            'subpattern_rows': args.sub_rows,
            'subpattern_cols': args.sub_cols,
        })

    generate_target(
        spec,
        spacing_mm=spacing,
        gap_mm=gap,
        dpi=args.dpi,
        margin_mm=args.margin,
        output_path=args.output,
        add_info=not args.no_info,
    )


if __name__ == '__main__':
    main()
