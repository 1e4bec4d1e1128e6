from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

import numpy as np

from .types import Anchor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SsdAnchorsConfig:
    """
    Multi-scale SSD anchor grid.

    Consecutive layers that share a stride are merged into one feature map whose
    cells carry the anchors of every merged layer.
    """

    num_layers: int
    min_scale: float
    max_scale: float
    input_size_height: int
    input_size_width: int
    strides: Tuple[int, ...]
    anchor_offset_x: float = 0.5
    anchor_offset_y: float = 0.5
    aspect_ratios: Tuple[float, ...] = (1.0,)
    fixed_anchor_size: bool = False
    # Extra anchor per cell at sqrt(scale * next_scale); <= 0 disables it.
    interpolated_scale_aspect_ratio: float = 1.0
    reduce_boxes_in_lowest_layer: bool = False
    # Explicit feature map sizes; empty means ceil(input / stride).
    feature_map_height: Tuple[int, ...] = ()
    feature_map_width: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if self.num_layers < 1:
            raise ValueError("num_layers must be >= 1")
        if len(self.strides) != self.num_layers:
            raise ValueError(
                f"strides must have num_layers={self.num_layers} entries, got {len(self.strides)}"
            )
        if any(s <= 0 for s in self.strides):
            raise ValueError(f"strides must be > 0, got {tuple(self.strides)}")
        if self.input_size_height <= 0 or self.input_size_width <= 0:
            raise ValueError("input size must be > 0")
        if not self.aspect_ratios:
            raise ValueError("aspect_ratios must not be empty")
        if any(ar <= 0 for ar in self.aspect_ratios):
            raise ValueError("aspect_ratios must be > 0")
        if self.feature_map_height or self.feature_map_width:
            if len(self.feature_map_height) != self.num_layers or len(self.feature_map_width) != self.num_layers:
                raise ValueError("feature_map_height/feature_map_width must both have num_layers entries")


def _calculate_scale(min_scale: float, max_scale: float, stride_index: int, num_strides: int) -> float:
    if num_strides == 1:
        return (min_scale + max_scale) * 0.5
    return min_scale + (max_scale - min_scale) * stride_index / (num_strides - 1.0)


def generate_anchors(cfg: SsdAnchorsConfig) -> Tuple[Anchor, ...]:
    anchors: List[Anchor] = []
    num_strides = len(cfg.strides)

    layer_id = 0
    while layer_id < cfg.num_layers:
        scales: List[float] = []
        ratios: List[float] = []

        last_same_stride_layer = layer_id
        while last_same_stride_layer < num_strides and cfg.strides[last_same_stride_layer] == cfg.strides[layer_id]:
            scale = _calculate_scale(cfg.min_scale, cfg.max_scale, last_same_stride_layer, num_strides)
            if last_same_stride_layer == 0 and cfg.reduce_boxes_in_lowest_layer:
                ratios.extend([1.0, 2.0, 0.5])
                scales.extend([0.1, scale, scale])
            else:
                for ar in cfg.aspect_ratios:
                    ratios.append(ar)
                    scales.append(scale)
                if cfg.interpolated_scale_aspect_ratio > 0.0:
                    if last_same_stride_layer == num_strides - 1:
                        scale_next = 1.0
                    else:
                        scale_next = _calculate_scale(
                            cfg.min_scale, cfg.max_scale, last_same_stride_layer + 1, num_strides
                        )
                    scales.append(math.sqrt(scale * scale_next))
                    ratios.append(cfg.interpolated_scale_aspect_ratio)
            last_same_stride_layer += 1

        sizes = []
        for scale, ar in zip(scales, ratios):
            ratio_sqrt = math.sqrt(ar)
            sizes.append((scale * ratio_sqrt, scale / ratio_sqrt))  # (w, h)

        if cfg.feature_map_height:
            fm_h = cfg.feature_map_height[layer_id]
            fm_w = cfg.feature_map_width[layer_id]
        else:
            stride = cfg.strides[layer_id]
            fm_h = int(math.ceil(cfg.input_size_height / stride))
            fm_w = int(math.ceil(cfg.input_size_width / stride))

        for y in range(fm_h):
            y_center = (y + cfg.anchor_offset_y) / fm_h
            for x in range(fm_w):
                x_center = (x + cfg.anchor_offset_x) / fm_w
                for w, h in sizes:
                    if cfg.fixed_anchor_size:
                        w, h = 1.0, 1.0
                    anchors.append(Anchor(x_center=x_center, y_center=y_center, width=w, height=h))

        layer_id = last_same_stride_layer

    return tuple(anchors)


class AnchorTable(Sequence[Anchor]):
    """
    Immutable anchor table, generated once and shared read-only across frames.
    """

    def __init__(self, cfg: SsdAnchorsConfig):
        self.cfg = cfg
        self._anchors = generate_anchors(cfg)
        arr = np.array(
            [[a.x_center, a.y_center, a.width, a.height] for a in self._anchors],
            dtype=np.float64,
        ).reshape(-1, 4)
        arr.setflags(write=False)
        self._array = arr
        logger.debug("Generated %d anchors over %d layers", len(self._anchors), cfg.num_layers)

    def __getitem__(self, index):
        return self._anchors[index]

    def __len__(self) -> int:
        return len(self._anchors)

    def __iter__(self) -> Iterator[Anchor]:
        return iter(self._anchors)

    def as_array(self) -> np.ndarray:
        """
        (N, 4) read-only array of [x_center, y_center, width, height].
        """

        return self._array
