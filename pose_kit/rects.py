from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .types import Detection, ImageSize, NormalizedRect


def normalize_radians(angle: float) -> float:
    """
    Wrap an angle into [-pi, pi).
    """

    return angle - 2.0 * math.pi * math.floor((angle + math.pi) / (2.0 * math.pi))


def clip_detections(detections: Sequence[Detection], max_count: Optional[int] = None) -> List[Detection]:
    """
    Keep the first `max_count` detections. Input order is assumed to be priority order.
    """

    if max_count is None:
        return list(detections)
    if max_count < 1:
        raise ValueError(f"max_count must be >= 1, got {max_count}")
    return list(detections[:max_count])


@dataclass(frozen=True)
class DetectionsToRectsConfig:
    rotation_vector_start_keypoint_index: int = 0
    rotation_vector_end_keypoint_index: int = 2
    # degrees
    rotation_vector_target_angle: float = 90.0
    output_zero_rect_for_empty_detections: bool = True

    def __post_init__(self) -> None:
        if self.rotation_vector_start_keypoint_index < 0 or self.rotation_vector_end_keypoint_index < 0:
            raise ValueError("rotation keypoint indices must be >= 0")
        if self.rotation_vector_start_keypoint_index == self.rotation_vector_end_keypoint_index:
            raise ValueError("rotation start and end keypoints must differ")

    @property
    def target_angle_radians(self) -> float:
        return math.radians(self.rotation_vector_target_angle)


def compute_rotation(detection: Detection, image_size: ImageSize, cfg: DetectionsToRectsConfig) -> float:
    start = cfg.rotation_vector_start_keypoint_index
    end = cfg.rotation_vector_end_keypoint_index
    n = len(detection.keypoints)
    if start >= n or end >= n:
        raise ValueError(
            f"Rotation keypoints ({start}, {end}) out of range for a detection with {n} keypoints"
        )

    x0 = detection.keypoints[start][0] * image_size.width
    y0 = detection.keypoints[start][1] * image_size.height
    x1 = detection.keypoints[end][0] * image_size.width
    y1 = detection.keypoints[end][1] * image_size.height
    # Image y grows downwards; flip it so the angle is measured counter-clockwise.
    return normalize_radians(cfg.target_angle_radians - math.atan2(-(y1 - y0), x1 - x0))


def detections_to_rects(
    detections: Sequence[Detection],
    image_size: ImageSize,
    cfg: DetectionsToRectsConfig = DetectionsToRectsConfig(),
) -> List[NormalizedRect]:
    """
    One rotated rect per detection: box center and size, rotation from the keypoint vector.

    Empty input yields a single all-zero rect when
    `output_zero_rect_for_empty_detections` is set, so fixed-arity consumers
    always receive one element.
    """

    if not detections:
        return [NormalizedRect()] if cfg.output_zero_rect_for_empty_detections else []

    rects: List[NormalizedRect] = []
    for det in detections:
        rects.append(
            NormalizedRect(
                x_center=det.box.x_center,
                y_center=det.box.y_center,
                width=det.box.width,
                height=det.box.height,
                rotation=compute_rotation(det, image_size, cfg),
            )
        )
    return rects


@dataclass(frozen=True)
class RectTransformConfig:
    """
    Scale, square and shift a rotated rect into a region of interest.

    Shifts are fractions of the transformed width/height, applied along the
    rect's own (rotated) axes.
    """

    scale_x: float = 1.0
    scale_y: float = 1.0
    shift_x: float = 0.0
    shift_y: float = 0.0
    square_long: bool = False
    square_short: bool = False
    # Extra rotation added to the rect; radians or degrees, not both.
    rotation: Optional[float] = None
    rotation_degrees: Optional[float] = None

    def __post_init__(self) -> None:
        if self.scale_x < 0 or self.scale_y < 0:
            raise ValueError("scale_x and scale_y must be >= 0")
        if self.square_long and self.square_short:
            raise ValueError("square_long and square_short are mutually exclusive")
        if self.rotation is not None and self.rotation_degrees is not None:
            raise ValueError("Set either rotation or rotation_degrees, not both")


def transform_rect(rect: NormalizedRect, image_size: ImageSize, cfg: RectTransformConfig) -> NormalizedRect:
    w_px, h_px = float(image_size.width), float(image_size.height)

    rotation = rect.rotation
    if cfg.rotation is not None:
        rotation = normalize_radians(rotation + cfg.rotation)
    elif cfg.rotation_degrees is not None:
        rotation = normalize_radians(rotation + math.radians(cfg.rotation_degrees))

    width = rect.width * cfg.scale_x
    height = rect.height * cfg.scale_y

    # Squaring happens in pixels so the ROI is square on the image.
    if cfg.square_long:
        side = max(width * w_px, height * h_px)
        width, height = side / w_px, side / h_px
    elif cfg.square_short:
        side = min(width * w_px, height * h_px)
        width, height = side / w_px, side / h_px

    x_center, y_center = rect.x_center, rect.y_center
    if cfg.shift_x or cfg.shift_y:
        dx = w_px * width * cfg.shift_x
        dy = h_px * height * cfg.shift_y
        cos_r, sin_r = math.cos(rotation), math.sin(rotation)
        x_center += (dx * cos_r - dy * sin_r) / w_px
        y_center += (dx * sin_r + dy * cos_r) / h_px

    return NormalizedRect(
        x_center=x_center,
        y_center=y_center,
        width=width,
        height=height,
        rotation=rotation,
    )


def transform_rects(
    rects: Sequence[NormalizedRect],
    image_size: ImageSize,
    cfg: RectTransformConfig,
) -> List[NormalizedRect]:
    return [transform_rect(r, image_size, cfg) for r in rects]
