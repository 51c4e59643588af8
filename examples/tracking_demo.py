#!/usr/bin/env python3
"""Demo script for the tracking and stereo front-end.

This script runs a EuRoC sequence through the front-end and reports, per
frame, how many features were tracked, detected, stereo matched and given
a depth. Optionally the results are streamed to Rerun:
- Left/right images
- Features colored by track length, with motion since the previous frame
- Stereo matches labeled with their disparity (also shown with --show)
- Features with depth as a 3D point cloud

Usage:
    python examples/tracking_demo.py data/euroc/MH_01_easy
    python examples/tracking_demo.py data/euroc/MH_01_easy --config config/frontend.yaml --rerun
    python examples/tracking_demo.py data/euroc/MH_01_easy --show --disparity

Requirements:
    - EuRoC dataset downloaded (sequence root or its mav0/ directory)
"""

import argparse
import logging
from pathlib import Path

import cv2

from vio_frontend import DatasetReader, FrontendConfig, StereoRig, VisualFrontend
from vio_frontend.drawing import (
    draw_features,
    draw_stereo_matches,
    draw_tracks,
    normalize_disparity,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Feature tracking and stereo front-end demo")
    parser.add_argument("dataset", type=Path, help="EuRoC sequence or mav0 directory")
    parser.add_argument("--config", type=Path, default=None, help="Front-end YAML config")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after N frames")
    parser.add_argument("--mono", action="store_true", help="Ignore cam1 images")
    parser.add_argument(
        "--clahe", type=float, default=2.0, help="CLAHE clip limit, 0 to disable"
    )
    parser.add_argument("--rerun", action="store_true", help="Stream results to Rerun")
    parser.add_argument("--show", action="store_true", help="Show OpenCV windows, q to quit")
    parser.add_argument("--disparity", action="store_true", help="Compute dense disparity maps")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    return parser


def _show(frame, previous, disparity) -> bool:
    """Display the frame in OpenCV windows. Returns True when q is pressed."""
    if previous is None:
        cv2.imshow("Tracks", draw_features(frame))
    else:
        cv2.imshow("Tracks", draw_tracks(frame, previous))
    if frame.is_stereo:
        cv2.imshow("Stereo Matches", draw_stereo_matches(frame))
    if disparity is not None:
        cv2.imshow("Disparity", normalize_disparity(disparity))
    return cv2.waitKey(1) & 0xFF == ord("q")


def main() -> None:
    """Run the front-end demo."""
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    config = FrontendConfig.from_yaml(args.config) if args.config else FrontendConfig()

    print("Initializing front-end...")
    reader = DatasetReader(
        args.dataset,
        use_right=not args.mono,
        clahe_clip_limit=args.clahe if args.clahe > 0 else None,
    )
    rig = StereoRig.from_dataset_path(reader.dataset_path) if reader.is_stereo else None
    frontend = VisualFrontend.from_config(config, rig=rig)

    visualizer = None
    if args.rerun:
        from vio_frontend.visualization import RerunVisualizer

        visualizer = RerunVisualizer("vio-frontend")

    if rig is not None:
        print(f"Stereo baseline: {rig.baseline:.4f} m, focal length: {rig.focal_length:.1f} px")
    print(f"Processing {len(reader)} frames...")
    print()

    previous = None
    for i, (left, right, timestamp_ns) in enumerate(reader):
        if args.max_frames is not None and i >= args.max_frames:
            break

        frame = frontend.create_frame(timestamp_ns, i, left, right)
        result = frontend.process(frame, previous)

        disparity = None
        if args.disparity:
            disparity = frontend.stereo_matcher.compute_disparity_map(frame)

        if visualizer is not None:
            visualizer.log_frame(frame, previous, disparity)

        if args.show and _show(frame, previous, disparity):
            break

        # Print progress every 50 frames
        if i % 50 == 0:
            print(
                f"Frame {i:4d}: "
                f"{result.num_features:4d} features, "
                f"{result.tracking.num_new:3d} new, "
                f"{result.num_stereo_matches:3d} stereo, "
                f"{result.num_depths:3d} depths "
                f"({result.timing.total_ms:.1f} ms)"
            )

        previous = frame

    if args.show:
        cv2.destroyAllWindows()
    print()
    print("Done!")


if __name__ == "__main__":
    main()
