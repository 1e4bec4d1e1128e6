from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from . import split_outputs

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    - box_output_index/score_output_index: force which outputs hold boxes and scores
    """

    device: str = "cpu"
    half: bool = False
    num_coords: int = 12
    box_output_index: Optional[int] = None
    score_output_index: Optional[int] = None


class TorchScriptBackend:
    """
    Minimal TorchScript backend using `torch.jit.load`.

    The scripted module must return a (boxes, scores) tuple or list.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.cfg = cfg
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.half = cfg.half

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def infer(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device)
        if self.half:
            x = x.half()
        else:
            x = x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if not isinstance(y, (tuple, list)):
            raise ValueError("TorchScript pose detector must return (boxes, scores)")

        outputs = [t.detach().to("cpu").float().numpy() for t in y]
        return split_outputs(
            outputs,
            self.cfg.num_coords,
            box_index=self.cfg.box_output_index,
            score_index=self.cfg.score_output_index,
        )
