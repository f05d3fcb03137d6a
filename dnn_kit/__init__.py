"""
Pre/post-processing around accelerated vision models.

Two pipelines share one preprocessing core:
- `Yolo`: letterbox -> planar float blob -> engine -> decode -> NMS
- `FeatureExtractor`: resize -> planar float blob -> engine -> raw embeddings

The engine is anything implementing `InferenceEngine` (ONNX Runtime and
TensorRT backends ship in `dnn_kit.backends`).
"""

from .types import Candidates, Detection, DetectionFormat, InputLayout, TensorShape
from .exceptions import DnnError, PreconditionViolation, UnsupportedOutputFormat
from .letterbox import LetterboxGeometry, compute_geometry, letterbox
from .blob import blob_from_image, blob_from_images
from .nms import NMSConfig, nms, suppress
from .postprocess import YoloPostConfig, YoloPostprocessor, decode
from .engine import InferenceEngine
from .features import FeatureExtractor
from .config import PipelineConfig, load_pipeline_config
from .runtime import (
    Yolo,
    find_project_root,
    load_engine,
    load_feature_extractor,
    load_from_config,
    load_yolo,
    resolve_path,
)
from .visualize import draw_detections

__all__ = [
    "Candidates",
    "Detection",
    "DetectionFormat",
    "InputLayout",
    "TensorShape",
    "DnnError",
    "PreconditionViolation",
    "UnsupportedOutputFormat",
    "LetterboxGeometry",
    "compute_geometry",
    "letterbox",
    "blob_from_image",
    "blob_from_images",
    "NMSConfig",
    "nms",
    "suppress",
    "YoloPostConfig",
    "YoloPostprocessor",
    "decode",
    "InferenceEngine",
    "FeatureExtractor",
    "PipelineConfig",
    "load_pipeline_config",
    "Yolo",
    "find_project_root",
    "load_engine",
    "load_feature_extractor",
    "load_from_config",
    "load_yolo",
    "resolve_path",
    "draw_detections",
]
