from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import cv2

from pose_kit import PoseDetectorOptions, draw_detections, draw_rects, load_pipeline, load_pose_detector_options


def read_image(path: str):
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def build_options(args: argparse.Namespace) -> PoseDetectorOptions:
    base = load_pose_detector_options(Path(args.config)) if args.config else PoseDetectorOptions()
    return PoseDetectorOptions(
        min_detection_confidence=base.min_detection_confidence if args.min_conf is None else float(args.min_conf),
        min_suppression_threshold=base.min_suppression_threshold if args.nms_thresh is None else float(args.nms_thresh),
        num_poses=base.num_poses if args.num_poses is None else int(args.num_poses),
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the pose detector on one image and print poses/ROIs.")
    parser.add_argument("--image", required=True, help="Input image path.")
    parser.add_argument("--model", default="Models/pose_detection.onnx", help="Model path (.onnx or TorchScript).")
    parser.add_argument("--backend", default=None, choices=["onnxruntime", "torchscript"])
    parser.add_argument("--config", default=None, help="JSON file with pose detector options.")
    parser.add_argument("--min-conf", type=float, default=None, help="Override min_detection_confidence.")
    parser.add_argument("--nms-thresh", type=float, default=None, help="Override min_suppression_threshold.")
    parser.add_argument("--num-poses", type=int, default=None, help="Keep at most this many poses.")
    parser.add_argument("--out", default=None, help="Write an overlay image here.")
    parser.add_argument("--show", action="store_true", help="Display the overlay in a window.")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    image = read_image(args.image)
    pipeline = load_pipeline(args.model, backend=args.backend, options=build_options(args))
    result = pipeline(image)

    for det, rect, roi in zip(result.detections, result.pose_rects, result.expanded_pose_rects):
        print(
            f"score={det.score:.3f} box={tuple(round(v, 1) for v in det.as_xyxy())} "
            f"rotation={rect.rotation:.3f} roi=({roi.x_center:.3f}, {roi.y_center:.3f}, "
            f"{roi.width:.3f}, {roi.height:.3f})"
        )
    if not result.detections:
        print("No pose detected.")

    if args.out or args.show:
        vis = draw_detections(image, result.detections)
        vis = draw_rects(vis, result.expanded_pose_rects)
        if args.out:
            cv2.imwrite(args.out, vis)
        if args.show:
            cv2.imshow("pose detections", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
