from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .anchors import SsdAnchorsConfig
from .decode import TensorsToDetectionsConfig
from .nms import NMSConfig
from .rects import DetectionsToRectsConfig, RectTransformConfig

# Input tensor size of the pose detection model, (width, height).
POSE_DETECTION_TENSOR_SIZE = (224, 224)


@dataclass(frozen=True)
class PoseDetectorOptions:
    """
    User-facing knobs of the pose detector. Everything else is fixed by the model.
    """

    min_detection_confidence: float = 0.5
    min_suppression_threshold: float = 0.3
    num_poses: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_detection_confidence <= 1.0:
            raise ValueError("min_detection_confidence must be within [0, 1]")
        if not 0.0 <= self.min_suppression_threshold <= 1.0:
            raise ValueError("min_suppression_threshold must be within [0, 1]")
        if self.num_poses is not None and self.num_poses < 1:
            raise ValueError("num_poses must be >= 1 when set")


def pose_detection_anchors_config() -> SsdAnchorsConfig:
    return SsdAnchorsConfig(
        num_layers=5,
        min_scale=0.1484375,
        max_scale=0.75,
        input_size_height=224,
        input_size_width=224,
        anchor_offset_x=0.5,
        anchor_offset_y=0.5,
        strides=(8, 16, 32, 32, 32),
        aspect_ratios=(1.0,),
        fixed_anchor_size=True,
    )


def pose_detection_decode_config(options: PoseDetectorOptions) -> TensorsToDetectionsConfig:
    return TensorsToDetectionsConfig(
        num_classes=1,
        num_boxes=2254,
        num_coords=12,
        box_coord_offset=0,
        keypoint_coord_offset=4,
        num_keypoints=4,
        num_values_per_keypoint=2,
        sigmoid_score=True,
        score_clipping_thresh=100.0,
        reverse_output_order=True,
        min_score_thresh=options.min_detection_confidence,
        x_scale=224.0,
        y_scale=224.0,
        w_scale=224.0,
        h_scale=224.0,
    )


def pose_detection_nms_config(options: PoseDetectorOptions) -> NMSConfig:
    return NMSConfig(
        min_suppression_threshold=options.min_suppression_threshold,
        overlap_type="iou",
        algorithm="weighted",
    )


def pose_detection_rects_config() -> DetectionsToRectsConfig:
    # Keypoint 0 is the hip center, keypoint 2 the point the body axis points to.
    return DetectionsToRectsConfig(
        rotation_vector_start_keypoint_index=0,
        rotation_vector_end_keypoint_index=2,
        rotation_vector_target_angle=90.0,
        output_zero_rect_for_empty_detections=True,
    )


def pose_detection_rect_transform_config() -> RectTransformConfig:
    return RectTransformConfig(scale_x=2.6, scale_y=2.6, shift_y=-0.5, square_long=True)


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def options_from_dict(payload: Dict[str, Any]) -> PoseDetectorOptions:
    allowed = {"min_detection_confidence", "min_suppression_threshold", "num_poses"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pose detector option keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in ("min_detection_confidence", "min_suppression_threshold"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)

    num_poses = payload.get("num_poses")
    if num_poses is not None:
        if isinstance(num_poses, bool) or not isinstance(num_poses, int):
            raise ValueError("num_poses must be an integer")
        kwargs["num_poses"] = int(num_poses)

    return PoseDetectorOptions(**kwargs)


def load_pose_detector_options(path: Path) -> PoseDetectorOptions:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pose detector options not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pose detector options JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pose detector options must be a JSON object")
    return options_from_dict(payload)
