"""
Pose detection post-processing: SSD anchors, tensor decoding, weighted NMS,
projection back to the input image and ROI rectangles for a landmark model.

Framework-agnostic: works with NumPy arrays emitted by ONNX Runtime or PyTorch
tensors converted to NumPy. OpenCV is only needed for the letterbox
preprocessing and drawing helpers.
"""

from .types import Anchor, Detection, ImageSize, NormalizedRect, PixelDetection, RelativeBox
from .anchors import AnchorTable, SsdAnchorsConfig, generate_anchors
from .decode import TensorDecoder, TensorsToDetectionsConfig
from .nms import NMSConfig, non_max_suppression, overlap_similarity
from .projection import detections_to_pixels, project_detections
from .rects import (
    DetectionsToRectsConfig,
    RectTransformConfig,
    clip_detections,
    detections_to_rects,
    normalize_radians,
    transform_rect,
    transform_rects,
)
from .letterbox import PreprocessResult, letterbox, roi_transform_matrix
from .options import PoseDetectorOptions, load_pose_detector_options
from .runtime import (
    PoseDetectionPostprocessor,
    PoseDetectionResult,
    PoseDetectorPipeline,
    find_project_root,
    load_pipeline,
    resolve_path,
)
from .visualize import draw_detections, draw_rects

__all__ = [
    "Anchor",
    "Detection",
    "ImageSize",
    "NormalizedRect",
    "PixelDetection",
    "RelativeBox",
    "AnchorTable",
    "SsdAnchorsConfig",
    "generate_anchors",
    "TensorDecoder",
    "TensorsToDetectionsConfig",
    "NMSConfig",
    "non_max_suppression",
    "overlap_similarity",
    "detections_to_pixels",
    "project_detections",
    "DetectionsToRectsConfig",
    "RectTransformConfig",
    "clip_detections",
    "detections_to_rects",
    "normalize_radians",
    "transform_rect",
    "transform_rects",
    "PreprocessResult",
    "letterbox",
    "roi_transform_matrix",
    "PoseDetectorOptions",
    "load_pose_detector_options",
    "PoseDetectionPostprocessor",
    "PoseDetectionResult",
    "PoseDetectorPipeline",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
    "draw_detections",
    "draw_rects",
]
