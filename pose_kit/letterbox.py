from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .types import ImageSize, NormalizedRect


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    # 4x4 row-major, maps tensor-normalized -> image-normalized coordinates
    matrix: np.ndarray
    image_size: ImageSize
    roi: NormalizedRect


def pad_roi(roi: NormalizedRect, image_size: ImageSize, tensor_size: Tuple[int, int]) -> NormalizedRect:
    """
    Grow the ROI along one axis so its pixel aspect ratio matches the tensor's (w, h).
    """

    tensor_w, tensor_h = tensor_size
    tensor_aspect = tensor_h / tensor_w
    roi_w = roi.width * image_size.width
    roi_h = roi.height * image_size.height
    if roi_w <= 0 or roi_h <= 0:
        raise ValueError(f"ROI must have a positive size, got {roi}")

    if tensor_aspect > roi_h / roi_w:
        new_w, new_h = roi_w, roi_w * tensor_aspect
    else:
        new_w, new_h = roi_h / tensor_aspect, roi_h

    return NormalizedRect(
        x_center=roi.x_center,
        y_center=roi.y_center,
        width=new_w / image_size.width,
        height=new_h / image_size.height,
        rotation=roi.rotation,
    )


def roi_transform_matrix(
    roi: Optional[NormalizedRect],
    image_size: ImageSize,
    tensor_size: Tuple[int, int],
    keep_aspect_ratio: bool = True,
) -> Tuple[np.ndarray, NormalizedRect]:
    """
    Build the 4x4 matrix that maps a point in the (unit) tensor space back into
    image-normalized coordinates, for a rotated ROI.

    Returns:
        matrix: (4, 4) float64, row-major
        roi: the ROI actually sampled (padded when keep_aspect_ratio)
    """

    if roi is None:
        roi = NormalizedRect(x_center=0.5, y_center=0.5, width=1.0, height=1.0, rotation=0.0)
    if keep_aspect_ratio:
        roi = pad_roi(roi, image_size, tensor_size)

    a = roi.width * image_size.width
    b = roi.height * image_size.height
    c = math.cos(roi.rotation)
    d = math.sin(roi.rotation)
    e = roi.x_center * image_size.width
    f = roi.y_center * image_size.height
    g = 1.0 / image_size.width
    h = 1.0 / image_size.height

    matrix = np.array(
        [
            [a * c * g, -b * d * g, 0.0, (-0.5 * a * c + 0.5 * b * d + e) * g],
            [a * d * h, b * c * h, 0.0, (-0.5 * b * c - 0.5 * a * d + f) * h],
            [0.0, 0.0, a * g, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
    return matrix, roi


def letterbox(
    image: np.ndarray,
    tensor_size: Tuple[int, int] = (224, 224),
    roi: Optional[NormalizedRect] = None,
    keep_aspect_ratio: bool = True,
    value_range: Tuple[float, float] = (-1.0, 1.0),
    channels_first: bool = False,
) -> PreprocessResult:
    """
    Crop the (rotated) ROI out of a BGR image into a fixed-size RGB float tensor.

    Areas outside the image are filled with zeros before normalization. The
    returned blob has a batch axis: (1, H, W, 3), or (1, 3, H, W) with
    `channels_first`.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array (BGR).")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")

    img_h, img_w = image.shape[:2]
    image_size = ImageSize(width=img_w, height=img_h)
    matrix, used_roi = roi_transform_matrix(roi, image_size, tensor_size, keep_aspect_ratio)

    # Tensor pixel -> image pixel, used as inverse map by warpAffine.
    tensor_w, tensor_h = tensor_size
    to_image = np.array(
        [
            [matrix[0, 0] * img_w / tensor_w, matrix[0, 1] * img_w / tensor_h, matrix[0, 3] * img_w],
            [matrix[1, 0] * img_h / tensor_w, matrix[1, 1] * img_h / tensor_h, matrix[1, 3] * img_h],
        ],
        dtype=np.float64,
    )
    warped = cv2.warpAffine(
        image,
        to_image,
        (tensor_w, tensor_h),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0),
    )

    lo, hi = value_range
    blob = warped[:, :, ::-1].astype(np.float32) * ((hi - lo) / 255.0) + lo
    if channels_first:
        blob = np.transpose(blob, (2, 0, 1))
    blob = np.ascontiguousarray(blob[None, ...])

    return PreprocessResult(blob=blob, matrix=matrix, image_size=image_size, roi=used_roi)
