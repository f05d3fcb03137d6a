from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .types import Candidates, Detection


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: Optional[int] = None


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Equal scores keep their input order. A box is dropped when its IoU with a
    kept box is strictly greater than `cfg.iou_threshold`.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    boxes = boxes.astype(np.float64, copy=False)
    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-np.asarray(scores), kind="stable")
    keep = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(i)

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = inter / np.maximum(union, 1e-6)

        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int32)


def suppress(
    candidates: Candidates,
    conf_threshold: float,
    iou_threshold: float,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Reduce overlapping candidates to the final detections of one image.

    Candidates scoring at or below `conf_threshold` never take part (same rule as
    OpenCV's NMSBoxes). Output is ordered by descending score.
    """

    if len(candidates) == 0:
        return []

    scored = np.where(candidates.scores > conf_threshold)[0]
    if scored.size == 0:
        return []

    keep_local = nms(
        candidates.boxes[scored],
        candidates.scores[scored],
        NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections),
    )
    keep = scored[keep_local]
    return Candidates(boxes=candidates.boxes[keep], scores=candidates.scores[keep]).to_detections()
