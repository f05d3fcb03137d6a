from __future__ import annotations

import logging
from typing import Sequence

import cv2
import numpy as np

from .exceptions import PreconditionViolation

logger = logging.getLogger(__name__)


def _check_triplet(name: str, values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float32).reshape(-1)
    if arr.shape[0] != 3:
        raise PreconditionViolation(f"{name} must have 3 values (one per channel), got {len(arr)}")
    return arr


def _check_batch(images: Sequence[np.ndarray]) -> None:
    if len(images) == 0:
        raise PreconditionViolation("Cannot pack an empty batch.")
    first = images[0]
    for idx, img in enumerate(images):
        if not isinstance(img, np.ndarray) or img.ndim != 3 or img.shape[2] != 3:
            raise PreconditionViolation(
                f"Image {idx}: expected shape (H, W, 3), got {getattr(img, 'shape', None)}"
            )
        if img.dtype != np.uint8:
            raise PreconditionViolation(f"Image {idx}: expected dtype uint8, got {img.dtype}")
        if img.shape != first.shape:
            raise PreconditionViolation(
                f"Image {idx}: size {img.shape[:2]} differs from first image {first.shape[:2]}; "
                "resize the batch to one size before packing."
            )


def blob_from_images(
    images: Sequence[np.ndarray],
    std: Sequence[float] = (1.0, 1.0, 1.0),
    mean: Sequence[float] = (0.0, 0.0, 0.0),
    swap_rb: bool = True,
    normalize: bool = True,
) -> np.ndarray:
    """
    Pack same-sized HWC uint8 images into an NCHW float32 blob.

    Each image is split into three planes written one after the other, so the
    flat view of the result is channel-planar per image, images concatenated.
    Per channel c: ``(x [/ 255] - mean[c]) / std[c]``.
    """

    _check_batch(images)
    std_arr = _check_triplet("std", std)
    mean_arr = _check_triplet("mean", mean)
    if np.any(std_arr == 0):
        raise PreconditionViolation(f"std must not contain zeros, got {std_arr.tolist()}")

    n = len(images)
    h, w = images[0].shape[:2]
    planes = np.empty((n, 3, h, w), dtype=np.uint8)
    for i, img in enumerate(images):
        if swap_rb:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        else:
            img = np.ascontiguousarray(img)
        # planes[i, c] is an owned (H, W) view at flat offset (3 * i + c) * H * W
        for c, plane in enumerate(cv2.split(img)):
            planes[i, c] = plane

    blob = planes.astype(np.float32)
    if normalize:
        blob *= np.float32(1.0 / 255.0)
    blob -= mean_arr.reshape(1, 3, 1, 1)
    blob /= std_arr.reshape(1, 3, 1, 1)

    logger.debug("packed %d image(s) into blob %s", n, blob.shape)
    return blob


def blob_from_image(
    image: np.ndarray,
    std: Sequence[float] = (1.0, 1.0, 1.0),
    mean: Sequence[float] = (0.0, 0.0, 0.0),
    swap_rb: bool = True,
    normalize: bool = True,
) -> np.ndarray:
    """Single-image form of `blob_from_images`; returns shape (1, 3, H, W)."""
    return blob_from_images([image], std=std, mean=mean, swap_rb=swap_rb, normalize=normalize)
