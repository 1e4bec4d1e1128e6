from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np

from .types import NormalizedRect, PixelDetection


def _check_image(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for drawing. Install with `pip install opencv-python`.") from e
    return cv2


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[PixelDetection],
    *,
    color: Tuple[int, int, int] = (0, 255, 255),
    keypoint_color: Tuple[int, int, int] = (255, 56, 56),
    show_score: bool = True,
    box_thickness: int = 1,
    keypoint_radius: int = 3,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw boxes, keypoints and scores on an OpenCV BGR image and return a copy.
    """

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        for kx, ky in det.keypoints:
            cv2.circle(out, (int(round(kx)), int(round(ky))), keypoint_radius, keypoint_color, thickness=-1)

        if show_score:
            label = f"pose {det.score:.2f}"
            (_, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
            # Place label above the box if possible, else inside.
            y_text = y1i - baseline if y1i - th - baseline >= 0 else y1i + th
            cv2.putText(
                out,
                label,
                (x1i, min(y_text, h - 1)),
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                color,
                thickness=font_thickness,
                lineType=cv2.LINE_AA,
            )

    return out


def draw_rects(
    image_bgr: np.ndarray,
    rects: Iterable[NormalizedRect],
    *,
    color: Tuple[int, int, int] = (72, 249, 10),
    thickness: int = 2,
) -> np.ndarray:
    """
    Draw rotated normalized rects on a copy of a BGR image. Zero-size rects are skipped.
    """

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]
    for rect in rects:
        if rect.width <= 0 or rect.height <= 0:
            continue
        box = (
            (rect.x_center * w, rect.y_center * h),
            (rect.width * w, rect.height * h),
            math.degrees(rect.rotation),
        )
        pts = cv2.boxPoints(box).astype(np.int32).reshape((-1, 1, 2))
        cv2.polylines(out, [pts], isClosed=True, color=color, thickness=thickness)
    return out
