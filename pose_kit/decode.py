from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types import Anchor, Detection, RelativeBox

logger = logging.getLogger(__name__)

BOX_DECODINGS = ("linear", "exponential")


@dataclass(frozen=True)
class TensorsToDetectionsConfig:
    """
    Layout and decoding parameters for SSD-style box/score tensors.

    Box rows hold 4 box values at `box_coord_offset` followed by keypoints at
    `keypoint_coord_offset`. Values are (y, x, h, w) / (y, x) unless
    `reverse_output_order` is set, which reads (x, y, w, h) / (x, y).
    """

    num_classes: int
    num_boxes: int
    num_coords: int
    x_scale: float = 0.0
    y_scale: float = 0.0
    w_scale: float = 0.0
    h_scale: float = 0.0
    box_coord_offset: int = 0
    keypoint_coord_offset: int = 0
    num_keypoints: int = 0
    num_values_per_keypoint: int = 2
    sigmoid_score: bool = False
    score_clipping_thresh: Optional[float] = None
    reverse_output_order: bool = False
    min_score_thresh: Optional[float] = None
    # "linear": size = delta / scale * anchor; "exponential": size = exp(delta / scale) * anchor
    box_decoding: str = "linear"
    flip_vertically: bool = False
    ignore_classes: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if self.num_classes < 1 or self.num_boxes < 1:
            raise ValueError("num_classes and num_boxes must be >= 1")
        if self.num_values_per_keypoint < 2:
            raise ValueError("num_values_per_keypoint must be >= 2")
        if self.box_coord_offset < 0 or self.box_coord_offset + 4 > self.num_coords:
            raise ValueError(
                f"box values at offset {self.box_coord_offset} do not fit in num_coords={self.num_coords}"
            )
        kp_end = self.keypoint_coord_offset + self.num_keypoints * self.num_values_per_keypoint
        if self.num_keypoints < 0 or self.keypoint_coord_offset < 0 or kp_end > self.num_coords:
            raise ValueError(
                f"{self.num_keypoints} keypoints at offset {self.keypoint_coord_offset} "
                f"do not fit in num_coords={self.num_coords}"
            )
        if min(self.x_scale, self.y_scale, self.w_scale, self.h_scale) <= 0:
            raise ValueError("x_scale, y_scale, w_scale and h_scale must be > 0")
        if self.box_decoding not in BOX_DECODINGS:
            raise ValueError(f"box_decoding must be one of {BOX_DECODINGS}, got {self.box_decoding!r}")
        if self.score_clipping_thresh is not None and self.score_clipping_thresh < 0:
            raise ValueError("score_clipping_thresh must be >= 0")
        if set(range(self.num_classes)) <= set(self.ignore_classes):
            raise ValueError("ignore_classes must leave at least one class")


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _anchors_as_array(anchors: Sequence[Anchor]) -> np.ndarray:
    as_array = getattr(anchors, "as_array", None)
    if callable(as_array):
        return np.asarray(as_array(), dtype=np.float64)
    return np.array(
        [[a.x_center, a.y_center, a.width, a.height] for a in anchors],
        dtype=np.float64,
    ).reshape(-1, 4)


def _squeeze_batch(t: np.ndarray, name: str) -> np.ndarray:
    p = np.asarray(t, dtype=np.float64)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported for {name} (got shape {p.shape}).")
        p = p[0]
    if p.ndim != 2:
        raise ValueError(f"Expected 2D {name} tensor, got shape {p.shape}")
    return p


class TensorDecoder:
    """
    Decode raw box regressors and class scores into scored detections.

    Rows are decoded against the anchor at the same index; the output keeps row
    order and drops rows under `min_score_thresh`.
    """

    def __init__(self, cfg: TensorsToDetectionsConfig, anchors: Sequence[Anchor]):
        anchor_arr = _anchors_as_array(anchors)
        if anchor_arr.shape[0] != cfg.num_boxes:
            raise ValueError(
                f"Anchor count {anchor_arr.shape[0]} does not match num_boxes={cfg.num_boxes}"
            )
        self.cfg = cfg
        self._anchors = anchor_arr

    def decode(self, raw_boxes: np.ndarray, raw_scores: np.ndarray) -> List[Detection]:
        boxes = _squeeze_batch(raw_boxes, "box")
        scores_in = _squeeze_batch(raw_scores, "score")
        cfg = self.cfg

        if boxes.shape != (cfg.num_boxes, cfg.num_coords):
            raise ValueError(
                f"Box tensor shape {boxes.shape} does not match (num_boxes={cfg.num_boxes}, num_coords={cfg.num_coords})"
            )
        if scores_in.shape != (cfg.num_boxes, cfg.num_classes):
            raise ValueError(
                f"Score tensor shape {scores_in.shape} does not match "
                f"(num_boxes={cfg.num_boxes}, num_classes={cfg.num_classes})"
            )

        scores, class_ids = self._decode_scores(scores_in)
        keep = np.ones(cfg.num_boxes, dtype=bool)
        if cfg.min_score_thresh is not None:
            keep &= scores >= cfg.min_score_thresh
        if not keep.any():
            return []

        centers, sizes, keypoints = self._decode_boxes(boxes)

        negative = (sizes[:, 0] < 0) | (sizes[:, 1] < 0)
        if (keep & negative).any():
            logger.debug("Dropping %d detections with negative size", int((keep & negative).sum()))
        keep &= ~negative

        detections: List[Detection] = []
        for i in np.flatnonzero(keep):
            detections.append(
                Detection(
                    score=float(scores[i]),
                    box=RelativeBox(
                        x_center=float(centers[i, 0]),
                        y_center=float(centers[i, 1]),
                        width=float(sizes[i, 0]),
                        height=float(sizes[i, 1]),
                    ),
                    keypoints=tuple((float(x), float(y)) for x, y in keypoints[i]),
                    class_id=int(class_ids[i]),
                )
            )
        return detections

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _decode_scores(self, raw_scores: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        cfg = self.cfg
        s = raw_scores
        if cfg.sigmoid_score:
            if cfg.score_clipping_thresh is not None:
                s = np.clip(s, -cfg.score_clipping_thresh, cfg.score_clipping_thresh)
            s = _sigmoid(s)

        if cfg.ignore_classes:
            s = s.copy()
            for c in cfg.ignore_classes:
                if 0 <= c < cfg.num_classes:
                    s[:, c] = -np.inf

        class_ids = np.argmax(s, axis=1)
        scores = s[np.arange(s.shape[0]), class_ids]
        return scores, class_ids

    def _decode_boxes(self, raw_boxes: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Returns centers (N, 2) as (x, y), sizes (N, 2) as (w, h) and keypoints (N, K, 2) as (x, y).
        """

        cfg = self.cfg
        a = self._anchors
        r = raw_boxes
        off = cfg.box_coord_offset

        if cfg.reverse_output_order:
            x, y, w, h = r[:, off], r[:, off + 1], r[:, off + 2], r[:, off + 3]
        else:
            y, x, h, w = r[:, off], r[:, off + 1], r[:, off + 2], r[:, off + 3]

        x_center = x / cfg.x_scale * a[:, 2] + a[:, 0]
        y_center = y / cfg.y_scale * a[:, 3] + a[:, 1]
        if cfg.box_decoding == "exponential":
            width = np.exp(w / cfg.w_scale) * a[:, 2]
            height = np.exp(h / cfg.h_scale) * a[:, 3]
        else:
            width = w / cfg.w_scale * a[:, 2]
            height = h / cfg.h_scale * a[:, 3]

        n = r.shape[0]
        keypoints = np.zeros((n, cfg.num_keypoints, 2), dtype=np.float64)
        for k in range(cfg.num_keypoints):
            kp_off = cfg.keypoint_coord_offset + k * cfg.num_values_per_keypoint
            if cfg.reverse_output_order:
                kx, ky = r[:, kp_off], r[:, kp_off + 1]
            else:
                ky, kx = r[:, kp_off], r[:, kp_off + 1]
            keypoints[:, k, 0] = kx / cfg.x_scale * a[:, 2] + a[:, 0]
            keypoints[:, k, 1] = ky / cfg.y_scale * a[:, 3] + a[:, 1]

        if cfg.flip_vertically:
            y_center = 1.0 - y_center
            keypoints[:, :, 1] = 1.0 - keypoints[:, :, 1]

        centers = np.stack([x_center, y_center], axis=1)
        sizes = np.stack([width, height], axis=1)
        return centers, sizes, keypoints
