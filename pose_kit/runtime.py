from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .anchors import AnchorTable, SsdAnchorsConfig
from .decode import TensorDecoder, TensorsToDetectionsConfig
from .letterbox import PreprocessResult, letterbox
from .nms import NMSConfig, non_max_suppression
from .options import (
    POSE_DETECTION_TENSOR_SIZE,
    PoseDetectorOptions,
    pose_detection_anchors_config,
    pose_detection_decode_config,
    pose_detection_nms_config,
    pose_detection_rect_transform_config,
    pose_detection_rects_config,
)
from .projection import detections_to_pixels, project_detections
from .rects import (
    DetectionsToRectsConfig,
    RectTransformConfig,
    clip_detections,
    detections_to_rects,
    transform_rects,
)
from .types import Detection, ImageSize, NormalizedRect, PixelDetection

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when `pose_kit` is vendored as `A/pose_kit` and models live in `A/models`.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PoseDetectionResult:
    """
    Per-frame outputs. All coordinates are in the unrotated, uncropped input image.

    - detections: pixel-space detections, at most `num_poses`
    - pose_rects: rotated rects around each pose (one zero rect when nothing is found)
    - expanded_pose_rects: pose_rects grown into ROIs for a landmark model
    - image: the input image passed through, if any
    """

    detections: List[PixelDetection]
    pose_rects: List[NormalizedRect]
    expanded_pose_rects: List[NormalizedRect]
    normalized_detections: List[Detection] = field(default_factory=list)
    image: Optional[np.ndarray] = None


class PoseDetectionPostprocessor:
    """
    Raw tensors -> detections and ROIs.

    Anchors are generated once here and shared read-only by every frame, so one
    instance may serve frames from several threads.
    """

    def __init__(
        self,
        options: PoseDetectorOptions = PoseDetectorOptions(),
        *,
        anchors_cfg: Optional[SsdAnchorsConfig] = None,
        decode_cfg: Optional[TensorsToDetectionsConfig] = None,
        nms_cfg: Optional[NMSConfig] = None,
        rects_cfg: Optional[DetectionsToRectsConfig] = None,
        rect_transform_cfg: Optional[RectTransformConfig] = None,
    ):
        self.options = options
        self.anchors = AnchorTable(anchors_cfg or pose_detection_anchors_config())
        self.decoder = TensorDecoder(decode_cfg or pose_detection_decode_config(options), self.anchors)
        self.nms_cfg = nms_cfg or pose_detection_nms_config(options)
        self.rects_cfg = rects_cfg or pose_detection_rects_config()
        self.rect_transform_cfg = rect_transform_cfg or pose_detection_rect_transform_config()
        logger.info(
            "Pose detection postprocessor ready: %d anchors, min_score=%s, nms=%s/%s, num_poses=%s",
            len(self.anchors),
            self.decoder.cfg.min_score_thresh,
            self.nms_cfg.algorithm,
            self.nms_cfg.min_suppression_threshold,
            options.num_poses,
        )

    def process(
        self,
        raw_boxes: np.ndarray,
        raw_scores: np.ndarray,
        matrix,
        image_size: ImageSize,
        image: Optional[np.ndarray] = None,
    ) -> PoseDetectionResult:
        decoded = self.decoder.decode(raw_boxes, raw_scores)
        kept = non_max_suppression(decoded, self.nms_cfg)
        projected = project_detections(kept, matrix)
        limited = clip_detections(projected, self.options.num_poses)
        logger.debug(
            "Frame: %d decoded, %d after NMS, %d after limit", len(decoded), len(kept), len(limited)
        )

        pose_rects = detections_to_rects(limited, image_size, self.rects_cfg)
        expanded = transform_rects(pose_rects, image_size, self.rect_transform_cfg)

        return PoseDetectionResult(
            detections=detections_to_pixels(limited, image_size),
            pose_rects=pose_rects,
            expanded_pose_rects=expanded,
            normalized_detections=limited,
            image=image,
        )


class PoseDetectorPipeline:
    """
    Plug-and-play pipeline: preprocess (ROI letterbox) -> inference -> postprocess.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray`. `infer_fn`
    receives the blob and returns the (raw_boxes, raw_scores) pair.
    """

    def __init__(
        self,
        infer_fn: InferFn,
        *,
        options: PoseDetectorOptions = PoseDetectorOptions(),
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        tensor_size: Tuple[int, int] = POSE_DETECTION_TENSOR_SIZE,
        value_range: Tuple[float, float] = (-1.0, 1.0),
        channels_first: bool = False,
        postprocessor: Optional[PoseDetectionPostprocessor] = None,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.tensor_size = tensor_size
        self.value_range = value_range
        self.channels_first = channels_first
        self.post = postprocessor or PoseDetectionPostprocessor(options)

    def preprocess(self, image_bgr: np.ndarray, roi: Optional[NormalizedRect] = None) -> PreprocessResult:
        return letterbox(
            image_bgr,
            tensor_size=self.tensor_size,
            roi=roi,
            keep_aspect_ratio=True,
            value_range=self.value_range,
            channels_first=self.channels_first,
        )

    def __call__(self, image_bgr: np.ndarray, roi: Optional[NormalizedRect] = None) -> PoseDetectionResult:
        prep = self.preprocess(image_bgr, roi)
        raw_boxes, raw_scores = self._infer_fn(prep.blob)
        return self.post.process(raw_boxes, raw_scores, prep.matrix, prep.image_size, image=image_bgr)


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    options: PoseDetectorOptions = PoseDetectorOptions(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
) -> PoseDetectorPipeline:
    """
    Create a pose detector pipeline for a model on disk.

    Typical usage:
        pipe = load_pipeline("models/pose_detection.onnx")  # resolves from project root by default

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        backend: "onnxruntime" or "torchscript"; None infers it from the extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    num_coords = pose_detection_decode_config(options).num_coords

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=onnx_input_name, num_coords=num_coords),
        )
        return PoseDetectorPipeline(ort_backend.infer, options=options, backend=ort_backend, backend_name="onnxruntime")

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, half=torch_half, num_coords=num_coords),
        )
        # TorchScript exports are NCHW.
        return PoseDetectorPipeline(
            ts_backend.infer,
            options=options,
            backend=ts_backend,
            backend_name="torchscript",
            channels_first=True,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
