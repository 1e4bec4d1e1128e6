from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from .types import Detection, ImageSize, PixelDetection, RelativeBox


def as_affine(matrix) -> np.ndarray:
    """
    Reduce a 4x4 (or flat 16-value) projection matrix, or a 3x3 matrix, to its 2x3 affine part.
    """

    m = np.asarray(matrix, dtype=np.float64)
    if m.size == 16:
        m = m.reshape(4, 4)
        return np.array([[m[0, 0], m[0, 1], m[0, 3]], [m[1, 0], m[1, 1], m[1, 3]]], dtype=np.float64)
    if m.size == 9:
        return m.reshape(3, 3)[:2, :].copy()
    raise ValueError(f"Projection matrix must have 16 (4x4) or 9 (3x3) values, got shape {m.shape}")


def _apply(affine: np.ndarray, points: np.ndarray) -> np.ndarray:
    return points @ affine[:, :2].T + affine[:, 2]


def project_detections(detections: Sequence[Detection], matrix) -> List[Detection]:
    """
    Map detections from tensor-normalized into image-normalized coordinates.

    Box corners are transformed and re-boxed axis-aligned; keypoints are
    transformed point-wise. Scores, classes and keypoint counts are kept.
    """

    affine = as_affine(matrix)
    out: List[Detection] = []
    for det in detections:
        b = det.box
        corners = np.array(
            [[b.xmin, b.ymin], [b.xmax, b.ymin], [b.xmax, b.ymax], [b.xmin, b.ymax]],
            dtype=np.float64,
        )
        pc = _apply(affine, corners)
        xmin, ymin = pc.min(axis=0)
        xmax, ymax = pc.max(axis=0)

        keypoints: Tuple[Tuple[float, float], ...] = ()
        if det.keypoints:
            pk = _apply(affine, np.asarray(det.keypoints, dtype=np.float64))
            keypoints = tuple((float(x), float(y)) for x, y in pk)

        out.append(
            Detection(
                score=det.score,
                box=RelativeBox.from_corners(float(xmin), float(ymin), float(xmax), float(ymax)),
                keypoints=keypoints,
                class_id=det.class_id,
            )
        )
    return out


def detections_to_pixels(
    detections: Sequence[Detection],
    image_size: ImageSize,
    clip: bool = True,
) -> List[PixelDetection]:
    """
    Convert image-normalized detections to pixel coordinates of the original image.
    """

    w, h = image_size.width, image_size.height
    out: List[PixelDetection] = []
    for det in detections:
        x1, y1, x2, y2 = det.box.xmin * w, det.box.ymin * h, det.box.xmax * w, det.box.ymax * h
        if clip:
            x1, x2 = float(np.clip(x1, 0, w)), float(np.clip(x2, 0, w))
            y1, y2 = float(np.clip(y1, 0, h)), float(np.clip(y2, 0, h))
        out.append(
            PixelDetection(
                x1=x1,
                y1=y1,
                x2=x2,
                y2=y2,
                score=det.score,
                keypoints=tuple((x * w, y * h) for x, y in det.keypoints),
                class_id=det.class_id,
            )
        )
    return out
