#!/usr/bin/env python3
"""Estimate camera and LiDAR time-to-collision over a KITTI-style sequence."""

import argparse
import json
import sys
from pathlib import Path

import cv2

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.calibration import CalibrationMatrices
from src.fusion import TTCPipeline
from src.perception2d import KeypointDetector
from src.sensors import CameraLoader, LiDARLoader, SensorSynchronizer
from src.utils import ProgressLogger, get_nested, load_config, setup_logger_from_config
from src.viz import show_3d_objects


def parse_args():
    parser = argparse.ArgumentParser(description="Camera/LiDAR TTC estimation")
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data/sequence",
        help="Sequence directory with image_2/, velodyne/ and label_2/",
    )
    parser.add_argument(
        "--calib",
        type=str,
        required=True,
        help="KITTI calibration file",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config (defaults are used for missing keys)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="outputs/ttc",
        help="Output directory for results and top-view images",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=2,
        help="Camera index in the calibration file",
    )
    parser.add_argument(
        "--start",
        type=int,
        default=0,
        help="First frame index",
    )
    parser.add_argument(
        "--end",
        type=int,
        default=None,
        help="Last frame index (exclusive)",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Display the top view of every frame",
    )
    return parser.parse_args()


def main():
    args = parse_args()

    config = load_config(args.config)
    logger = setup_logger_from_config(config)

    data_dir = Path(args.data_dir)
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if not data_dir.exists():
        logger.error(f"Data directory not found: {data_dir}")
        return 1

    calib = CalibrationMatrices.from_kitti_calib(args.calib, camera=args.camera)
    pipeline = TTCPipeline.from_config(calib, config)
    detector = KeypointDetector(
        get_nested(config, "keypoints.detector", "ORB"),
        max_features=get_nested(config, "keypoints.max_features", 2000),
    )

    label_dir = data_dir / "label_2"
    sync = SensorSynchronizer(
        CameraLoader(data_dir / "image_2"),
        LiDARLoader(data_dir / "velodyne"),
        label_dir=label_dir if label_dir.exists() else None,
    )
    logger.info(f"Sequence has {len(sync)} synchronized frames")

    crop = get_nested(config, "lidar.crop", {})
    viz_enabled = args.show or get_nested(config, "visualization.enabled", False)
    world_size = get_nested(config, "visualization.world_size", [4.0, 20.0])
    image_size = get_nested(config, "visualization.image_size", [1000, 2000])

    end = len(sync) if args.end is None else min(args.end, len(sync))
    results = []
    prev_frame = None

    with ProgressLogger(end - args.start, logger, description="TTC") as progress:
        for synced in sync.iterate_frames(start=args.start, end=end):
            frame = synced.to_data_frame(crop=crop)
            frame.keypoints, frame.descriptors = detector.detect(synced.image)
            stats = pipeline.prepare_frame(frame)
            logger.debug(f"Frame {frame.frame_id}: {stats.to_dict()}")

            if prev_frame is not None:
                frame.kpt_matches = detector.match(prev_frame.descriptors, frame.descriptors)
                pair = pipeline.process_pair(prev_frame, frame)

                for obj in pair.objects:
                    logger.info(
                        f"Frame {frame.frame_id} box {obj.curr_box_id}: "
                        f"TTC LiDAR={obj.ttc_lidar.value:.2f}s ({obj.ttc_lidar.status.value}), "
                        f"camera={obj.ttc_camera.value:.2f}s ({obj.ttc_camera.status.value})"
                    )
                results.append({"frame_id": frame.frame_id, **pair.to_dict()})

            if viz_enabled:
                top_view = show_3d_objects(
                    frame.bounding_boxes,
                    world_size=world_size,
                    image_size=image_size,
                    wait=get_nested(config, "visualization.wait", True),
                    display=args.show,
                )
                cv2.imwrite(str(output_dir / f"{frame.frame_id}_topview.png"), top_view)

            prev_frame = frame
            progress.update()

    results_file = output_dir / "ttc_results.json"
    with open(results_file, "w") as f:
        json.dump(results, f, indent=2)
    logger.info(f"Saved results to {results_file}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
