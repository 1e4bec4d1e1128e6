from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


Keypoint = Tuple[float, float]


@dataclass(frozen=True)
class Anchor:
    """
    SSD prior box, normalized to the model input tensor.
    """

    x_center: float
    y_center: float
    width: float
    height: float


@dataclass(frozen=True)
class RelativeBox:
    """
    Axis-aligned box in normalized coordinates (center + size).
    """

    x_center: float
    y_center: float
    width: float
    height: float

    @classmethod
    def from_corners(cls, xmin: float, ymin: float, xmax: float, ymax: float) -> "RelativeBox":
        return cls(
            x_center=(xmin + xmax) / 2.0,
            y_center=(ymin + ymax) / 2.0,
            width=xmax - xmin,
            height=ymax - ymin,
        )

    @property
    def xmin(self) -> float:
        return self.x_center - self.width / 2.0

    @property
    def ymin(self) -> float:
        return self.y_center - self.height / 2.0

    @property
    def xmax(self) -> float:
        return self.x_center + self.width / 2.0

    @property
    def ymax(self) -> float:
        return self.y_center + self.height / 2.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.xmin, self.ymin, self.xmax, self.ymax


@dataclass(frozen=True)
class Detection:
    """
    Pose detection in normalized coordinates.

    Tensor-normalized right after decoding, image-normalized after projection.
    """

    score: float
    box: RelativeBox
    keypoints: Tuple[Keypoint, ...] = ()
    class_id: Optional[int] = None


@dataclass(frozen=True)
class PixelDetection:
    """
    Detection in original image pixel coordinates.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    keypoints: Tuple[Keypoint, ...] = ()
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2


@dataclass(frozen=True)
class NormalizedRect:
    """
    Rotated rectangle in image-normalized coordinates.

    `rotation` is in radians and turns the rect x-axis towards +y of the image
    (y pointing down), i.e. counter-clockwise when the image y-axis is flipped up.
    """

    x_center: float = 0.0
    y_center: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = 0.0


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
