"""
Optional inference backends for pose_kit.

Backends are kept in a separate module so core functionality (anchor decoding,
suppression, rect math) stays lightweight and can be used without installing
inference runtimes.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

__all__ = ["split_outputs"]


def split_outputs(
    outputs: Sequence[np.ndarray],
    num_coords: int,
    box_index: Optional[int] = None,
    score_index: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pick the (raw_boxes, raw_scores) pair out of a model's outputs.

    Explicit indices win; otherwise the box tensor is the one whose last
    dimension equals `num_coords` and the score tensor is the other one.
    """

    if len(outputs) < 2:
        raise ValueError(f"Expected at least 2 model outputs (boxes, scores), got {len(outputs)}")
    if box_index is not None and score_index is not None:
        return np.asarray(outputs[box_index]), np.asarray(outputs[score_index])

    arrays = [np.asarray(o) for o in outputs]
    box_candidates = [i for i, a in enumerate(arrays) if a.ndim >= 2 and a.shape[-1] == num_coords]
    if box_index is None:
        if not box_candidates:
            raise ValueError(
                f"No model output has last dimension num_coords={num_coords}: {[a.shape for a in arrays]}"
            )
        box_index = box_candidates[0]
    if score_index is None:
        others = [i for i in range(len(arrays)) if i != box_index]
        score_index = others[0]
    return arrays[box_index], arrays[score_index]
