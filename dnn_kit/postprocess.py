from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .exceptions import PreconditionViolation, UnsupportedOutputFormat
from .letterbox import LetterboxGeometry
from .nms import suppress
from .types import Candidates, Detection, DetectionFormat, as_tensor_shape

logger = logging.getLogger(__name__)


def _output_dims(output_shape: Sequence[int]) -> Tuple[int, int]:
    dims = as_tensor_shape(output_shape)
    if len(dims) != 2:
        raise PreconditionViolation(f"Expected detector output shape (attributes, candidates), got {dims}")
    attributes, num_candidates = dims
    return attributes, num_candidates


def decode(
    raw: np.ndarray,
    output_shape: Sequence[int],
    conf_threshold: float,
    geometry: LetterboxGeometry,
    orig_size: Tuple[int, int],
) -> Candidates:
    """
    Decode one image's raw detector output into candidates in original image pixels.

    Args:
        raw: flat buffer laid out as [attribute][candidate]; value of attribute `a`
            for candidate `i` lives at ``a * candidates + i``
        output_shape: (attributes, candidates)
        conf_threshold: candidates with confidence <= threshold are dropped
        geometry: letterbox transform used to build the input blob
        orig_size: (width, height) of the original image
    """

    attributes, num_candidates = _output_dims(output_shape)
    fmt = DetectionFormat.from_attributes(attributes)
    if fmt is not DetectionFormat.XYWH_CONF:
        raise UnsupportedOutputFormat(attributes, "per-class score outputs (xywhsc) are not supported yet")

    flat = np.asarray(raw, dtype=np.float32).reshape(-1)
    needed = attributes * num_candidates
    if flat.shape[0] < needed:
        raise PreconditionViolation(f"Raw output holds {flat.shape[0]} values, expected at least {needed}")
    p = flat[:needed].reshape(attributes, num_candidates)

    conf = p[4]
    keep = np.where(conf > conf_threshold)[0]
    if keep.size == 0:
        return Candidates.empty()

    xc, yc, bw, bh = p[0, keep], p[1, keep], p[2, keep], p[3, keep]
    x1 = xc - bw / 2
    y1 = yc - bh / 2
    x2 = xc + bw / 2
    y2 = yc + bh / 2
    boxes = np.stack([x1, y1, x2, y2], axis=1).astype(np.float64)

    boxes = _scale_boxes(boxes, orig_size, geometry)
    # round half away from zero; coordinates are non-negative after clipping
    boxes = np.floor(boxes + 0.5).astype(np.int32)

    return Candidates(boxes=boxes, scores=conf[keep].astype(np.float32))


def _scale_boxes(boxes: np.ndarray, orig_size: Tuple[int, int], geometry: LetterboxGeometry) -> np.ndarray:
    """
    Map boxes from letterboxed input space back to the original image.
    """

    left, top = geometry.offset
    boxes[:, [0, 2]] = (boxes[:, [0, 2]] - left) / geometry.scale
    boxes[:, [1, 3]] = (boxes[:, [1, 3]] - top) / geometry.scale

    orig_w, orig_h = orig_size
    boxes[:, [0, 2]] = np.clip(boxes[:, [0, 2]], 0, orig_w)
    boxes[:, [1, 3]] = np.clip(boxes[:, [1, 3]], 0, orig_h)
    return boxes


@dataclass
class YoloPostConfig:
    """
    Detector post-processing settings.
    """

    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    max_detections: Optional[int] = None
    # When set, batch processing ignores the per-call thresholds and uses this
    # (conf, iou) pair instead. (0.25, 0.45) matches the legacy batch behavior.
    batch_threshold_override: Optional[Tuple[float, float]] = None


class YoloPostprocessor:
    """
    Decode + NMS for single-class YOLO exports with output (5, candidates):
    [xc, yc, w, h, conf] per candidate, attribute-major.
    """

    def __init__(self, cfg: YoloPostConfig):
        self.cfg = cfg

    def process(
        self,
        raw: np.ndarray,
        output_shape: Sequence[int],
        geometry: LetterboxGeometry,
        orig_size: Tuple[int, int],
        conf_threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
    ) -> List[Detection]:
        """
        Convert one image's raw output into final detections in original image coordinates.

        Thresholds left as None fall back to the config.
        """

        conf = self.cfg.conf_threshold if conf_threshold is None else conf_threshold
        iou = self.cfg.iou_threshold if iou_threshold is None else iou_threshold

        candidates = decode(raw, output_shape, conf, geometry, orig_size)
        detections = suppress(candidates, conf, iou, max_detections=self.cfg.max_detections)
        logger.debug("decoded %d candidate(s), kept %d after NMS", len(candidates), len(detections))
        return detections

    def process_batch(
        self,
        raw: np.ndarray,
        batch_size: int,
        output_shape: Sequence[int],
        geometry: LetterboxGeometry,
        orig_size: Tuple[int, int],
        conf_threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
    ) -> List[List[Detection]]:
        """
        Post-process a batch output; image `b` reads slice ``[b * A * K, (b + 1) * A * K)``.
        """

        if batch_size < 1:
            raise PreconditionViolation(f"batch_size must be >= 1, got {batch_size}")
        attributes, num_candidates = _output_dims(output_shape)
        per_image = attributes * num_candidates

        flat = np.asarray(raw, dtype=np.float32).reshape(-1)
        if flat.shape[0] < batch_size * per_image:
            raise PreconditionViolation(
                f"Raw output holds {flat.shape[0]} values, expected {batch_size * per_image} for batch {batch_size}"
            )

        if self.cfg.batch_threshold_override is not None:
            conf_threshold, iou_threshold = self.cfg.batch_threshold_override

        return [
            self.process(
                flat[b * per_image : (b + 1) * per_image],
                output_shape,
                geometry,
                orig_size,
                conf_threshold=conf_threshold,
                iou_threshold=iou_threshold,
            )
            for b in range(batch_size)
        ]
