from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .types import Detection, RelativeBox

OVERLAP_TYPES = ("iou", "modified_jaccard")
ALGORITHMS = ("default", "weighted")


@dataclass(frozen=True)
class NMSConfig:
    min_suppression_threshold: float = 0.3
    # "iou": intersection / union; "modified_jaccard": intersection / seed area
    overlap_type: str = "iou"
    # "default" drops overlapping candidates, "weighted" averages them into the seed.
    algorithm: str = "weighted"
    max_num_detections: Optional[int] = None
    min_score_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        if self.overlap_type not in OVERLAP_TYPES:
            raise ValueError(f"overlap_type must be one of {OVERLAP_TYPES}, got {self.overlap_type!r}")
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"algorithm must be one of {ALGORITHMS}, got {self.algorithm!r}")
        if self.max_num_detections is not None and self.max_num_detections < 1:
            raise ValueError("max_num_detections must be >= 1 when set")


def overlap_similarity(box: RelativeBox, seed: RelativeBox, overlap_type: str = "iou") -> float:
    """
    Axis-aligned overlap between `box` and `seed`. Rotation is ignored.
    """

    ix1 = max(box.xmin, seed.xmin)
    iy1 = max(box.ymin, seed.ymin)
    ix2 = min(box.xmax, seed.xmax)
    iy2 = min(box.ymax, seed.ymax)
    if ix2 <= ix1 or iy2 <= iy1:
        return 0.0
    inter = (ix2 - ix1) * (iy2 - iy1)

    if overlap_type == "modified_jaccard":
        denom = seed.area
    else:
        denom = box.area + seed.area - inter
    if denom <= 0.0:
        return 0.0
    return inter / denom


def _score_order(detections: Sequence[Detection]) -> List[int]:
    # Stable: equal scores keep their original index order.
    return sorted(range(len(detections)), key=lambda i: -detections[i].score)


def _weighted_merge(seed: Detection, cluster: Sequence[Detection]) -> Detection:
    if len(cluster) == 1:
        return seed
    weights = np.array([d.score for d in cluster], dtype=np.float64)
    total = float(weights.sum())
    if total <= 0.0:
        return seed

    corners = np.array([d.box.as_xyxy() for d in cluster], dtype=np.float64)
    xmin, ymin, xmax, ymax = (weights[:, None] * corners).sum(axis=0) / total

    keypoints = seed.keypoints
    if seed.keypoints:
        kps = np.array([d.keypoints for d in cluster], dtype=np.float64)  # (M, K, 2)
        avg = (weights[:, None, None] * kps).sum(axis=0) / total
        keypoints = tuple((float(x), float(y)) for x, y in avg)

    return Detection(
        score=seed.score,
        box=RelativeBox.from_corners(float(xmin), float(ymin), float(xmax), float(ymax)),
        keypoints=keypoints,
        class_id=seed.class_id,
    )


def weighted_nms(detections: Sequence[Detection], cfg: NMSConfig) -> List[Detection]:
    """
    Cluster detections around the highest-scoring remaining seed and replace the
    seed's box and keypoints by the score-weighted cluster average.

    The seed keeps its own score. One output per cluster, in seed order.
    """

    remaining = _score_order(detections)
    out: List[Detection] = []

    while remaining:
        seed_idx = remaining[0]
        seed = detections[seed_idx]
        if cfg.min_score_threshold is not None and seed.score < cfg.min_score_threshold:
            break

        cluster = [seed]
        rest: List[int] = []
        for idx in remaining[1:]:
            cand = detections[idx]
            if overlap_similarity(cand.box, seed.box, cfg.overlap_type) >= cfg.min_suppression_threshold:
                cluster.append(cand)
            else:
                rest.append(idx)

        out.append(_weighted_merge(seed, cluster))
        remaining = rest
        if cfg.max_num_detections is not None and len(out) >= cfg.max_num_detections:
            break

    return out


def hard_nms(detections: Sequence[Detection], cfg: NMSConfig) -> List[Detection]:
    """
    Keep a detection only if it overlaps no previously kept detection.
    """

    kept: List[Detection] = []
    for idx in _score_order(detections):
        cand = detections[idx]
        if cfg.min_score_threshold is not None and cand.score < cfg.min_score_threshold:
            break
        suppressed = any(
            overlap_similarity(cand.box, k.box, cfg.overlap_type) >= cfg.min_suppression_threshold
            for k in kept
        )
        if not suppressed:
            kept.append(cand)
        if cfg.max_num_detections is not None and len(kept) >= cfg.max_num_detections:
            break
    return kept


def non_max_suppression(detections: Sequence[Detection], cfg: NMSConfig) -> List[Detection]:
    if not detections:
        return []
    if cfg.algorithm == "weighted":
        return weighted_nms(detections, cfg)
    return hard_nms(detections, cfg)
