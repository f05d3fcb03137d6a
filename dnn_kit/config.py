from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

_KINDS = ("detector", "features")
_BACKENDS = ("onnxruntime", "tensorrt")


@dataclass(frozen=True)
class PipelineConfig:
    model_path: str
    kind: str = "detector"
    backend: Optional[str] = None
    max_batch_size: int = 1
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    max_detections: Optional[int] = None
    std: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    mean: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    pad_color: Tuple[int, int, int] = (114, 114, 114)
    providers: Optional[Tuple[str, ...]] = None
    device: str = "cuda"

    def __post_init__(self) -> None:
        if not self.model_path:
            raise ValueError("model_path must not be empty")
        if self.kind not in _KINDS:
            raise ValueError(f"kind must be one of {_KINDS}")
        if self.backend is not None and self.backend not in _BACKENDS:
            raise ValueError(f"backend must be one of {_BACKENDS} or null")
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")
        if len(self.std) != 3 or any(s == 0 for s in self.std):
            raise ValueError("std must have 3 non-zero values")
        if len(self.mean) != 3:
            raise ValueError("mean must have 3 values")
        if len(self.pad_color) != 3 or any(not 0 <= c <= 255 for c in self.pad_color):
            raise ValueError("pad_color must have 3 values in [0, 255]")


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    value = payload.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _triplet(payload: Dict[str, Any], key: str, default: Tuple[float, float, float]) -> Tuple[float, ...]:
    value = payload.get(key, default)
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"{key} must be a list of 3 numbers")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
        raise ValueError(f"{key} must be a list of 3 numbers")
    return tuple(value)


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load a pipeline config from JSON. Only `model_path` is required, e.g.

        {"model_path": "models/yolov8n.engine", "max_batch_size": 8, "conf_threshold": 0.3}
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "model_path",
        "kind",
        "backend",
        "max_batch_size",
        "conf_threshold",
        "iou_threshold",
        "max_detections",
        "std",
        "mean",
        "pad_color",
        "providers",
        "device",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    model_path = payload.get("model_path")
    if not isinstance(model_path, str):
        raise ValueError("model_path must be a string")
    for key in ("kind", "backend", "device"):
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise ValueError(f"{key} must be a string")
    providers = payload.get("providers")
    if providers is not None:
        if not isinstance(providers, list) or any(not isinstance(p, str) for p in providers):
            raise ValueError("providers must be a list of strings")
        providers = tuple(providers)

    max_batch_size = _optional_int(payload, "max_batch_size", 1)
    if max_batch_size is None:
        raise ValueError("max_batch_size must be an integer")

    return PipelineConfig(
        model_path=model_path,
        kind=payload.get("kind", "detector"),
        backend=payload.get("backend"),
        max_batch_size=max_batch_size,
        conf_threshold=_require_number(payload, "conf_threshold", 0.25),
        iou_threshold=_require_number(payload, "iou_threshold", 0.45),
        max_detections=_optional_int(payload, "max_detections", None),
        std=tuple(float(v) for v in _triplet(payload, "std", (1.0, 1.0, 1.0))),
        mean=tuple(float(v) for v in _triplet(payload, "mean", (0.0, 0.0, 0.0))),
        pad_color=tuple(int(v) for v in _triplet(payload, "pad_color", (114, 114, 114))),
        providers=providers,
        device=payload.get("device", "cuda"),
    )
