from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .exceptions import PreconditionViolation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LetterboxGeometry:
    """
    Scale and padding of one letterbox transform.

    The same instance drives the resize/pad in `letterbox()` and the inverse
    mapping in `postprocess.decode()`; both sides must see identical margins.

    Attributes:
        scale: uniform resize factor (target / source)
        pad_w, pad_h: fractional half-padding per axis
        left, top, right, bottom: integer border margins actually applied
        resized_size: (width, height) after resize, before padding
        target_size: (width, height) after padding
    """

    scale: float
    pad_w: float
    pad_h: float
    left: int
    top: int
    right: int
    bottom: int
    resized_size: Tuple[int, int]
    target_size: Tuple[int, int]

    @property
    def offset(self) -> Tuple[int, int]:
        """(left, top) offset of the original image inside the padded one."""
        return self.left, self.top


def compute_geometry(src_size: Tuple[int, int], target_size: Tuple[int, int]) -> LetterboxGeometry:
    """
    Compute aspect-preserving scale and padding to fit `src_size` into `target_size`.

    Both sizes are (width, height).
    """

    src_w, src_h = (int(v) for v in src_size)
    new_w, new_h = (int(v) for v in target_size)
    if src_w <= 0 or src_h <= 0:
        raise PreconditionViolation(f"Source size must be positive, got {src_size}")
    if new_w <= 0 or new_h <= 0:
        raise PreconditionViolation(f"Target size must be positive, got {target_size}")

    r = min(new_w / src_w, new_h / src_h)
    # half away from zero; at least one pixel per axis for very thin images
    resized_w = max(1, int(math.floor(src_w * r + 0.5)))
    resized_h = max(1, int(math.floor(src_h * r + 0.5)))

    dw = (new_w - resized_w) / 2
    dh = (new_h - resized_h) / 2

    # +-0.1 splits an odd pixel onto bottom/right; integral pads stay symmetric
    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))

    return LetterboxGeometry(
        scale=r,
        pad_w=dw,
        pad_h=dh,
        left=left,
        top=top,
        right=right,
        bottom=bottom,
        resized_size=(resized_w, resized_h),
        target_size=(new_w, new_h),
    )


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, int, int] = (114, 114, 114),
    geometry: Optional[LetterboxGeometry] = None,
) -> Tuple[np.ndarray, LetterboxGeometry]:
    """
    Resize (area interpolation) and pad an image to exactly `new_shape` (width, height).

    Pass `geometry` to reuse one transform for every image of a batch.

    Returns:
        padded: resized + padded image, shape (new_h, new_w, C)
        geometry: the transform applied, for inverting detections
    """

    if image is None or not hasattr(image, "shape") or image.ndim < 2:
        raise PreconditionViolation("image must be a NumPy array (H, W[, C]).")

    h, w = image.shape[:2]
    if geometry is None:
        geometry = compute_geometry((w, h), new_shape)

    resized_w, resized_h = geometry.resized_size
    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_AREA)

    padded = cv2.copyMakeBorder(
        image,
        geometry.top,
        geometry.bottom,
        geometry.left,
        geometry.right,
        cv2.BORDER_CONSTANT,
        value=color,
    )
    logger.debug(
        "letterbox %sx%s -> %sx%s (scale=%.4f, pad=%s)",
        w,
        h,
        padded.shape[1],
        padded.shape[0],
        geometry.scale,
        (geometry.left, geometry.top, geometry.right, geometry.bottom),
    )
    return padded, geometry
