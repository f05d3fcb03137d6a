from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .blob import blob_from_images
from .config import PipelineConfig
from .engine import InferenceEngine
from .exceptions import PreconditionViolation
from .features import FeatureExtractor
from .letterbox import LetterboxGeometry, compute_geometry, letterbox
from .postprocess import YoloPostConfig, YoloPostprocessor
from .types import Detection, InputLayout, as_tensor_shape

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live next to the project (e.g. `A/models`) and scripts run from elsewhere.
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
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    geometry: LetterboxGeometry


class Yolo:
    """
    Detector pipeline: letterbox -> pack -> engine -> decode -> NMS.

    Expects BGR images (OpenCV-style) as `np.ndarray` and returns `Detection`s
    in original image coordinates. The engine must produce a (5, candidates)
    output per image.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        *,
        post_cfg: Optional[YoloPostConfig] = None,
        pad_color: Tuple[int, int, int] = (114, 114, 114),
        std: Sequence[float] = (1.0, 1.0, 1.0),
        mean: Sequence[float] = (0.0, 0.0, 0.0),
    ):
        self.engine = engine
        self.layout = InputLayout.from_shape(engine.get_input_shape())
        self.output_shape = as_tensor_shape(engine.get_output_shape())
        self.pad_color = pad_color
        self.std = tuple(std)
        self.mean = tuple(mean)
        self.post = YoloPostprocessor(post_cfg if post_cfg is not None else YoloPostConfig())

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        return self.preprocess_batch([image_bgr])

    def preprocess_batch(self, images_bgr: Sequence[np.ndarray]) -> PreprocessResult:
        """
        Letterbox every image with one shared geometry and pack them.

        All images must have the size of the first one.
        """

        if len(images_bgr) == 0:
            raise PreconditionViolation("At least one image is required.")
        for idx, img in enumerate(images_bgr):
            if img is None or not hasattr(img, "shape"):
                raise PreconditionViolation(f"Image {idx} must be a NumPy array (BGR).")
            if img.ndim != 3 or img.shape[2] != 3:
                raise PreconditionViolation(f"Image {idx}: expected shape (H, W, 3), got {img.shape}")
            if img.shape[:2] != images_bgr[0].shape[:2]:
                raise PreconditionViolation(
                    f"Image {idx}: size {img.shape[:2]} differs from first image {images_bgr[0].shape[:2]}"
                )

        orig_h, orig_w = images_bgr[0].shape[:2]
        geometry = compute_geometry((orig_w, orig_h), self.layout.size)
        padded = [letterbox(img, self.layout.size, color=self.pad_color, geometry=geometry)[0] for img in images_bgr]
        blob = blob_from_images(padded, std=self.std, mean=self.mean, swap_rb=True, normalize=True)

        return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h), geometry=geometry)

    def predict(
        self,
        image_bgr: np.ndarray,
        conf_threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
    ) -> List[Detection]:
        prep = self.preprocess(image_bgr)
        raw = self.engine.run(prep.blob, 1)
        return self.post.process(
            raw,
            self.output_shape,
            prep.geometry,
            prep.orig_size,
            conf_threshold=conf_threshold,
            iou_threshold=iou_threshold,
        )

    def predict_batch(
        self,
        images_bgr: Sequence[np.ndarray],
        conf_threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
    ) -> List[List[Detection]]:
        prep = self.preprocess_batch(images_bgr)
        batch_size = len(images_bgr)
        raw = self.engine.run(prep.blob, batch_size)
        return self.post.process_batch(
            raw,
            batch_size,
            self.output_shape,
            prep.geometry,
            prep.orig_size,
            conf_threshold=conf_threshold,
            iou_threshold=iou_threshold,
        )

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        return self.predict(image_bgr)


def load_engine(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    max_batch_size: int = 1,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    trt_device: str = "cuda",
    trt_input_name: Optional[str] = None,
    trt_output_name: Optional[str] = None,
    trt_output_index: int = 0,
) -> InferenceEngine:
    """
    Open a model on disk as an `InferenceEngine`.

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        backend: "onnxruntime", "tensorrt", or None to infer from the extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
        max_batch_size: largest batch the engine will be asked to run
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".engine", ".plan", ".trt"}:
            chosen = "tensorrt"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    logger.debug("loading %s with backend %s", resolved, chosen)
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        return OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_name=onnx_output_name,
                max_batch_size=max_batch_size,
            ),
        )

    if chosen == "tensorrt":
        from .backends.tensorrt_backend import TensorRTBackend, TensorRTBackendConfig

        return TensorRTBackend(
            resolved,
            TensorRTBackendConfig(
                device=trt_device,
                input_name=trt_input_name,
                output_name=trt_output_name,
                output_index=trt_output_index,
                max_batch_size=max_batch_size,
            ),
        )

    raise ValueError(f"Unsupported backend: {backend!r}")


def load_yolo(
    model_path: PathLike,
    *,
    post_cfg: Optional[YoloPostConfig] = None,
    pad_color: Tuple[int, int, int] = (114, 114, 114),
    **engine_kwargs,
) -> Yolo:
    """
    Typical usage:
        yolo = load_yolo("models/yolov8n.engine", max_batch_size=8)
        detections = yolo.predict(image, conf_threshold=0.3)
    """
    engine = load_engine(model_path, **engine_kwargs)
    return Yolo(engine, post_cfg=post_cfg, pad_color=pad_color)


def load_feature_extractor(
    model_path: PathLike,
    *,
    std: Sequence[float] = (1.0, 1.0, 1.0),
    mean: Sequence[float] = (0.0, 0.0, 0.0),
    **engine_kwargs,
) -> FeatureExtractor:
    engine = load_engine(model_path, **engine_kwargs)
    return FeatureExtractor(engine, std=std, mean=mean)


def load_from_config(cfg: PipelineConfig, *, root: Optional[PathLike] = "auto") -> Union[Yolo, FeatureExtractor]:
    """
    Build the pipeline described by a `PipelineConfig` (see `config.load_pipeline_config`).
    """

    engine = load_engine(
        cfg.model_path,
        backend=cfg.backend,
        root=root,
        max_batch_size=cfg.max_batch_size,
        onnx_providers=cfg.providers,
        trt_device=cfg.device,
    )
    if cfg.kind == "features":
        return FeatureExtractor(engine, std=cfg.std, mean=cfg.mean)
    post_cfg = YoloPostConfig(
        conf_threshold=cfg.conf_threshold,
        iou_threshold=cfg.iou_threshold,
        max_detections=cfg.max_detections,
    )
    return Yolo(engine, post_cfg=post_cfg, pad_color=cfg.pad_color, std=cfg.std, mean=cfg.mean)
