"""
Boundary between dnn_kit pre/post-processing and an inference runtime.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from .exceptions import PreconditionViolation
from .types import TensorShape


class InferenceEngine(Protocol):
    """
    Opaque compiled model.

    Shapes exclude the batch axis. `run` is synchronous and returns a flat
    float32 buffer of ``batch_size * prod(get_output_shape())`` values.
    """

    max_batch_size: int

    def get_input_shape(self) -> TensorShape:
        ...

    def get_output_shape(self) -> TensorShape:
        ...

    def run(self, blob: np.ndarray, batch_size: int) -> np.ndarray:
        ...


def check_batch_size(batch_size: int, max_batch_size: int) -> None:
    if batch_size < 1:
        raise PreconditionViolation(f"batch_size must be >= 1, got {batch_size}")
    if batch_size > max_batch_size:
        raise PreconditionViolation(f"batch_size {batch_size} exceeds the engine max batch size {max_batch_size}")


def batched_input(blob: np.ndarray, batch_size: int, input_shape: TensorShape) -> np.ndarray:
    """
    View a packed blob as (batch_size, C, H, W), checking its length.
    """

    arr = np.ascontiguousarray(blob, dtype=np.float32)
    expected = batch_size * int(np.prod(input_shape))
    if arr.size != expected:
        raise PreconditionViolation(
            f"Blob holds {arr.size} values, expected {expected} for batch {batch_size} x {input_shape}"
        )
    return arr.reshape((batch_size, *input_shape))
