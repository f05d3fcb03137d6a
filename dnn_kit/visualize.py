from __future__ import annotations

from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from .types import Detection


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    label: Optional[str] = "object",
    show_score: bool = True,
    color: Tuple[int, int, int] = (0, 255, 255),
    box_thickness: int = 1,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw detection boxes (and an optional label/score) on a BGR image and return a copy.
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = (int(v) for v in det.as_xyxy())
        # detections may touch the far edge (x2 == width); keep them drawable
        x1, x2 = min(max(x1, 0), w - 1), min(max(x2, 0), w - 1)
        y1, y2 = min(max(y1, 0), h - 1), min(max(y2, 0), h - 1)
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)

        parts = [p for p in (label, f"{det.score:.2f}" if show_score else None) if p]
        if not parts:
            continue
        text = " ".join(parts)

        (tw, th), baseline = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1 - th - baseline
        if y_text_top < 0:
            y_text_top = y1

        x_text_right = min(x1 + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            text,
            (x1, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (0, 0, 0),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
